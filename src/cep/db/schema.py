"""Relational schema for ingested call exports.

Child tables reference ``calls.id`` (the surrogate key) through their
``call_id`` column; the business key lives in ``calls.call_id``. Foreign keys
do not cascade: the writer deletes children explicitly, leaf tables first.
"""

from __future__ import annotations

from typing import Literal

from psycopg import Connection

from cep.db.client import transaction_cursor

Dialect = Literal["postgresql", "sqlite"]

PRIMARY_KEYS: dict[str, str] = {
    "postgresql": "bigserial primary key",
    "sqlite": "integer primary key autoincrement",
}

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    create table if not exists calls (
        id {pk},
        call_id bigint not null unique,
        call_number text,
        call_source text,
        caller_name text,
        caller_phone text,
        nature_of_call text,
        additional_info text,
        create_datetime timestamp not null,
        close_datetime timestamp,
        created_by text,
        closed_flag boolean not null default false,
        canceled_flag boolean not null default false,
        alarm_level integer,
        emd_code text,
        fire_controlled_time timestamp,
        xml_data jsonb,
        created_at timestamptz not null,
        updated_at timestamptz not null
    )
    """,
    """
    create table if not exists agency_contexts (
        id {pk},
        call_id bigint not null references calls(id),
        agency_type text,
        call_type text,
        priority text,
        status text,
        dispatcher text,
        created_datetime timestamp,
        closed_datetime timestamp,
        closed_flag boolean not null default false,
        canceled_flag boolean not null default false,
        radio_channel text,
        emd_case_number text,
        emd_code text
    )
    """,
    """
    create table if not exists locations (
        id {pk},
        call_id bigint not null unique references calls(id),
        full_address text,
        house_number text,
        house_number_suffix text,
        prefix_directional text,
        prefix_type text,
        street_name text,
        street_type text,
        street_directional text,
        city text,
        state text,
        zip text,
        zip4 text,
        venue text,
        latitude_y numeric(10, 6),
        longitude_x numeric(10, 6),
        common_name text,
        police_beat text,
        ems_district text,
        fire_quadrant text,
        census_tract text,
        station_area text,
        rural_grid text,
        nearest_cross_streets text,
        additional_info text,
        lat_lon_description text,
        qualifier text,
        custom_layer text,
        police_ori text,
        ems_ori text,
        fire_ori text,
        x_street_name text,
        x_street_type text,
        x_prefix_directional text,
        x_street_directional text,
        x_prefix_type text
    )
    """,
    """
    create table if not exists incidents (
        id {pk},
        call_id bigint not null references calls(id),
        incident_number text,
        incident_type text,
        type_description text,
        agency_type text,
        case_number text,
        jurisdiction text,
        create_datetime timestamp
    )
    """,
    """
    create table if not exists units (
        id {pk},
        call_id bigint not null references calls(id),
        unit_number text,
        unit_type text,
        is_primary boolean not null default false,
        jurisdiction text,
        assigned_datetime timestamp,
        dispatch_datetime timestamp,
        enroute_datetime timestamp,
        arrive_datetime timestamp,
        staged_datetime timestamp,
        at_patient_datetime timestamp,
        transport_datetime timestamp,
        at_hospital_datetime timestamp,
        depart_hospital_datetime timestamp,
        clear_datetime timestamp
    )
    """,
    """
    create table if not exists unit_personnel (
        id {pk},
        unit_id bigint not null references units(id),
        first_name text,
        middle_name text,
        last_name text,
        id_number text,
        shield_number text,
        is_primary_officer boolean not null default false,
        jurisdiction text
    )
    """,
    """
    create table if not exists unit_logs (
        id {pk},
        unit_id bigint not null references units(id),
        log_datetime timestamp,
        status text
    )
    """,
    """
    create table if not exists unit_dispositions (
        id {pk},
        unit_id bigint not null references units(id),
        disposition_name text,
        description text,
        count integer,
        disposition_datetime timestamp
    )
    """,
    """
    create table if not exists narratives (
        id {pk},
        call_id bigint not null references calls(id),
        create_datetime timestamp,
        create_user text,
        narrative_type text,
        text text,
        restriction text
    )
    """,
    """
    create table if not exists persons (
        id {pk},
        call_id bigint not null references calls(id),
        first_name text,
        middle_name text,
        last_name text,
        name_suffix text,
        date_of_birth timestamp,
        sex text,
        race text,
        height_inches numeric(6, 2),
        weight numeric(6, 2),
        eye_color text,
        hair_color text,
        address text,
        contact_phone text,
        role text,
        primary_caller_flag boolean not null default false,
        license_number text,
        license_state text,
        ssn text,
        global_subject_id text
    )
    """,
    """
    create table if not exists vehicles (
        id {pk},
        call_id bigint not null references calls(id),
        license_plate text,
        license_state text,
        make text,
        model text,
        year integer,
        color text,
        vin text,
        vehicle_type text
    )
    """,
    """
    create table if not exists call_dispositions (
        id {pk},
        call_id bigint not null references calls(id),
        disposition_name text,
        description text,
        count integer,
        disposition_datetime timestamp
    )
    """,
    """
    create table if not exists processed_files (
        id {pk},
        filename text not null,
        file_hash text not null,
        status text not null check (status in ('success', 'failed')),
        records_processed integer,
        error_message text,
        processed_at timestamptz not null,
        unique (filename, file_hash)
    )
    """,
    "create index if not exists idx_agency_contexts_call on agency_contexts (call_id)",
    "create index if not exists idx_incidents_call on incidents (call_id)",
    "create index if not exists idx_units_call on units (call_id)",
    "create index if not exists idx_unit_personnel_unit on unit_personnel (unit_id)",
    "create index if not exists idx_unit_logs_unit on unit_logs (unit_id)",
    "create index if not exists idx_unit_dispositions_unit on unit_dispositions (unit_id)",
    "create index if not exists idx_narratives_call on narratives (call_id)",
    "create index if not exists idx_persons_call on persons (call_id)",
    "create index if not exists idx_vehicles_call on vehicles (call_id)",
    "create index if not exists idx_call_dispositions_call on call_dispositions (call_id)",
)


def render_schema(dialect: Dialect = "postgresql") -> list[str]:
    """Return DDL statements for the given dialect."""
    pk = PRIMARY_KEYS[dialect]
    return [statement.strip().replace("{pk}", pk) for statement in SCHEMA_STATEMENTS]


def apply_schema(conn: Connection, dialect: Dialect = "postgresql") -> None:
    """Create all tables and indexes if they do not exist."""
    with transaction_cursor(conn) as cursor:
        for statement in render_schema(dialect):
            cursor.execute(statement)
