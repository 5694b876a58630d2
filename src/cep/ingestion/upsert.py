"""Call graph writes: business-key upsert with full child replacement."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, TypeVar

from psycopg import Cursor
from psycopg.types.json import Jsonb
from pydantic import BaseModel

from cep.models import (
    AgencyContext,
    Call,
    CallGraph,
    Disposition,
    Incident,
    Location,
    Narrative,
    Person,
    Unit,
    Vehicle,
)
from cep.utils.logging import get_logger


logger = get_logger(__name__)


class CallWriteError(Exception):
    """Raised when any part of a call graph fails to write."""


@dataclass
class WriteResult:
    call_pk: int
    inserted: bool
    rows_written: int


CALL_COLUMNS = (
    "call_number",
    "call_source",
    "caller_name",
    "caller_phone",
    "nature_of_call",
    "additional_info",
    "create_datetime",
    "close_datetime",
    "created_by",
    "closed_flag",
    "canceled_flag",
    "alarm_level",
    "emd_code",
    "fire_controlled_time",
)

AGENCY_CONTEXT_COLUMNS = (
    "agency_type",
    "call_type",
    "priority",
    "status",
    "dispatcher",
    "created_datetime",
    "closed_datetime",
    "closed_flag",
    "canceled_flag",
    "radio_channel",
    "emd_case_number",
    "emd_code",
)

LOCATION_COLUMNS = (
    "full_address",
    "house_number",
    "house_number_suffix",
    "prefix_directional",
    "prefix_type",
    "street_name",
    "street_type",
    "street_directional",
    "city",
    "state",
    "zip",
    "zip4",
    "venue",
    "latitude_y",
    "longitude_x",
    "common_name",
    "police_beat",
    "ems_district",
    "fire_quadrant",
    "census_tract",
    "station_area",
    "rural_grid",
    "nearest_cross_streets",
    "additional_info",
    "lat_lon_description",
    "qualifier",
    "custom_layer",
    "police_ori",
    "ems_ori",
    "fire_ori",
    "x_street_name",
    "x_street_type",
    "x_prefix_directional",
    "x_street_directional",
    "x_prefix_type",
)

INCIDENT_COLUMNS = (
    "incident_number",
    "incident_type",
    "type_description",
    "agency_type",
    "case_number",
    "jurisdiction",
    "create_datetime",
)

UNIT_COLUMNS = (
    "unit_number",
    "unit_type",
    "is_primary",
    "jurisdiction",
    "assigned_datetime",
    "dispatch_datetime",
    "enroute_datetime",
    "arrive_datetime",
    "staged_datetime",
    "at_patient_datetime",
    "transport_datetime",
    "at_hospital_datetime",
    "depart_hospital_datetime",
    "clear_datetime",
)

UNIT_PERSONNEL_COLUMNS = (
    "first_name",
    "middle_name",
    "last_name",
    "id_number",
    "shield_number",
    "is_primary_officer",
    "jurisdiction",
)

UNIT_LOG_COLUMNS = ("log_datetime", "status")

DISPOSITION_COLUMNS = ("disposition_name", "description", "count", "disposition_datetime")

NARRATIVE_COLUMNS = ("create_datetime", "create_user", "narrative_type", "text", "restriction")

PERSON_COLUMNS = (
    "first_name",
    "middle_name",
    "last_name",
    "name_suffix",
    "date_of_birth",
    "sex",
    "race",
    "height_inches",
    "weight",
    "eye_color",
    "hair_color",
    "address",
    "contact_phone",
    "role",
    "primary_caller_flag",
    "license_number",
    "license_state",
    "ssn",
    "global_subject_id",
)

VEHICLE_COLUMNS = (
    "license_plate",
    "license_state",
    "make",
    "model",
    "year",
    "color",
    "vin",
    "vehicle_type",
)

_UNIT_IDS = "select id from units where call_id = %s"

# Leaf tables first so no delete leaves a dangling reference.
CHILD_DELETES = (
    f"delete from unit_personnel where unit_id in ({_UNIT_IDS})",
    f"delete from unit_logs where unit_id in ({_UNIT_IDS})",
    f"delete from unit_dispositions where unit_id in ({_UNIT_IDS})",
    "delete from call_dispositions where call_id = %s",
    "delete from vehicles where call_id = %s",
    "delete from persons where call_id = %s",
    "delete from narratives where call_id = %s",
    "delete from units where call_id = %s",
    "delete from incidents where call_id = %s",
    "delete from locations where call_id = %s",
    "delete from agency_contexts where call_id = %s",
)


def write_call_graph(
    cursor: Cursor,
    graph: CallGraph,
    now: Optional[datetime] = None,
) -> WriteResult:
    """Upsert the call by business key and replace all of its children.

    The caller owns the transaction; on error nothing here is committed and
    the caller is expected to roll back.
    """
    now = now or datetime.now(timezone.utc)
    call_id = graph.call.call_id
    try:
        call_pk, inserted = _upsert_call(cursor, graph.call, now)
        if not inserted:
            logger.info("upsert.replace call_id=%s call_pk=%s", call_id, call_pk)
            delete_children(cursor, call_pk)

        _insert_agency_contexts(cursor, call_pk, graph.agency_contexts)
        if graph.location is not None:
            _insert_location(cursor, call_pk, graph.location)
        _insert_incidents(cursor, call_pk, graph.incidents)
        _insert_units(cursor, call_pk, graph.units)
        _insert_narratives(cursor, call_pk, graph.narratives)
        _insert_persons(cursor, call_pk, graph.persons)
        _insert_vehicles(cursor, call_pk, graph.vehicles)
        _insert_call_dispositions(cursor, call_pk, graph.dispositions)
    except Exception as exc:
        raise CallWriteError(f"Failed to write call_id={call_id}: {exc}") from exc

    return WriteResult(call_pk=call_pk, inserted=inserted, rows_written=graph.row_count())


def delete_children(cursor: Cursor, call_pk: int) -> None:
    for statement in CHILD_DELETES:
        cursor.execute(statement, (call_pk,))


def _upsert_call(cursor: Cursor, call: Call, now: datetime) -> tuple[int, bool]:
    values = [getattr(call, column) for column in CALL_COLUMNS]
    values.append(Jsonb(call.xml_data))

    cursor.execute("select id from calls where call_id = %s", (call.call_id,))
    row = cursor.fetchone()
    if row is not None:
        call_pk = int(row[0])
        assignments = ", ".join(f"{column} = %s" for column in (*CALL_COLUMNS, "xml_data"))
        cursor.execute(
            f"update calls set {assignments}, updated_at = %s where id = %s",
            [*values, now, call_pk],
        )
        return call_pk, False

    columns = ("call_id", *CALL_COLUMNS, "xml_data", "created_at", "updated_at")
    placeholders = ", ".join(["%s"] * len(columns))
    cursor.execute(
        f"insert into calls ({', '.join(columns)}) values ({placeholders}) returning id",
        [call.call_id, *values, now, now],
    )
    return int(cursor.fetchone()[0]), True


def _insert_agency_contexts(
    cursor: Cursor, call_pk: int, contexts: Sequence[AgencyContext]
) -> None:
    _insert_records(cursor, "agency_contexts", "call_id", call_pk, AGENCY_CONTEXT_COLUMNS, contexts)


def _insert_location(cursor: Cursor, call_pk: int, location: Location) -> None:
    _insert_records(cursor, "locations", "call_id", call_pk, LOCATION_COLUMNS, [location])


def _insert_incidents(cursor: Cursor, call_pk: int, incidents: Sequence[Incident]) -> None:
    _insert_records(cursor, "incidents", "call_id", call_pk, INCIDENT_COLUMNS, incidents)


def _insert_units(cursor: Cursor, call_pk: int, units: Sequence[Unit]) -> None:
    columns = ("call_id", *UNIT_COLUMNS)
    query = (
        f"insert into units ({', '.join(columns)}) values "
        f"({', '.join(['%s'] * len(columns))}) returning id"
    )
    # One statement per unit: each id is needed for its nested rows.
    for unit in units:
        cursor.execute(query, [call_pk, *(getattr(unit, column) for column in UNIT_COLUMNS)])
        unit_pk = int(cursor.fetchone()[0])
        _insert_records(
            cursor, "unit_personnel", "unit_id", unit_pk, UNIT_PERSONNEL_COLUMNS, unit.personnel
        )
        _insert_records(cursor, "unit_logs", "unit_id", unit_pk, UNIT_LOG_COLUMNS, unit.logs)
        _insert_records(
            cursor, "unit_dispositions", "unit_id", unit_pk, DISPOSITION_COLUMNS, unit.dispositions
        )


def _insert_narratives(cursor: Cursor, call_pk: int, narratives: Sequence[Narrative]) -> None:
    _insert_records(cursor, "narratives", "call_id", call_pk, NARRATIVE_COLUMNS, narratives)


def _insert_persons(cursor: Cursor, call_pk: int, persons: Sequence[Person]) -> None:
    _insert_records(cursor, "persons", "call_id", call_pk, PERSON_COLUMNS, persons)


def _insert_vehicles(cursor: Cursor, call_pk: int, vehicles: Sequence[Vehicle]) -> None:
    _insert_records(cursor, "vehicles", "call_id", call_pk, VEHICLE_COLUMNS, vehicles)


def _insert_call_dispositions(
    cursor: Cursor, call_pk: int, dispositions: Sequence[Disposition]
) -> None:
    _insert_records(
        cursor, "call_dispositions", "call_id", call_pk, DISPOSITION_COLUMNS, dispositions
    )


def _insert_records(
    cursor: Cursor,
    table: str,
    parent_column: str,
    parent_pk: int,
    columns: Sequence[str],
    records: Iterable[BaseModel],
    batch_size: int = 200,
) -> None:
    """Insert records in document order using multi-row VALUES batches."""
    items = list(records)
    if not items:
        return

    all_columns = (parent_column, *columns)
    placeholders = "(" + ",".join(["%s"] * len(all_columns)) + ")"

    for batch in _chunked(items, batch_size):
        values: list[object] = []
        for record in batch:
            values.append(parent_pk)
            values.extend(getattr(record, column) for column in columns)

        query = f"insert into {table} ({', '.join(all_columns)}) values " + ",".join(
            [placeholders] * len(batch)
        )
        cursor.execute(query, values)


T = TypeVar("T")


def _chunked(items: Sequence[T], batch_size: int) -> list[list[T]]:
    return [list(items[i : i + batch_size]) for i in range(0, len(items), batch_size)]
