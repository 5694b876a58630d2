import json
import sqlite3
from datetime import datetime
from decimal import Decimal
from xml.sax.saxutils import escape

import pytest
from psycopg.types.json import Jsonb

from cep.db.schema import apply_schema


NAMESPACE = "http://www.newworldsystems.com/Aegis/CAD/Peripheral/CallExport/2011/02"

sqlite3.register_adapter(Decimal, str)
sqlite3.register_adapter(datetime, lambda value: value.isoformat(" "))
sqlite3.register_adapter(Jsonb, lambda value: json.dumps(value.obj))
sqlite3.register_converter("timestamp", lambda raw: datetime.fromisoformat(raw.decode()))
sqlite3.register_converter("timestamptz", lambda raw: datetime.fromisoformat(raw.decode()))
sqlite3.register_converter("numeric", lambda raw: Decimal(raw.decode()))
sqlite3.register_converter("boolean", lambda raw: raw not in (b"0", b""))
sqlite3.register_converter("jsonb", lambda raw: json.loads(raw))


class SqliteCursor:
    """psycopg-shaped cursor over sqlite3: %s placeholders, buffered results."""

    def __init__(self, cursor: sqlite3.Cursor) -> None:
        self._cursor = cursor
        self._rows: list[tuple] = []
        self.rowcount = -1

    def __enter__(self) -> "SqliteCursor":
        return self

    def __exit__(self, *exc) -> None:
        self._cursor.close()

    def execute(self, query: str, params=None) -> "SqliteCursor":
        self._cursor.execute(query.replace("%s", "?"), tuple(params or ()))
        # Drain eagerly so RETURNING statements finish before commit.
        self._rows = self._cursor.fetchall() if self._cursor.description else []
        self.rowcount = self._cursor.rowcount
        return self

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class SqliteConnection:
    def __init__(self) -> None:
        self._conn = sqlite3.connect(":memory:", detect_types=sqlite3.PARSE_DECLTYPES)
        self._conn.execute("pragma foreign_keys = on")
        self.closed = False

    def cursor(self) -> SqliteCursor:
        return SqliteCursor(self._conn.cursor())

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()
        self.closed = True

    def scalar(self, query: str, params=()):
        row = self._conn.execute(query.replace("%s", "?"), tuple(params)).fetchone()
        return row[0] if row else None

    def rows(self, query: str, params=()):
        return self._conn.execute(query.replace("%s", "?"), tuple(params)).fetchall()


@pytest.fixture
def db():
    conn = SqliteConnection()
    apply_schema(conn, dialect="sqlite")
    yield conn
    conn.close()


def _unit_xml(unit_number: str) -> str:
    return f"""
    <Unit>
      <UnitNumber>{escape(unit_number)}</UnitNumber>
      <Type>Engine</Type>
      <IsPrimary>true</IsPrimary>
      <DispatchDateTime>2024-01-26T10:01:00</DispatchDateTime>
      <ArriveDateTime>01/26/2024 10:07:30</ArriveDateTime>
      <Personnel>
        <UnitPersonnel>
          <FirstName>Pat</FirstName>
          <LastName>Rivera</LastName>
          <IDNumber>4411</IDNumber>
          <IsPrimaryOfficer>Yes</IsPrimaryOfficer>
        </UnitPersonnel>
      </Personnel>
      <UnitLogs>
        <UnitLog><DateTime>2024-01-26T10:01:00</DateTime><Status>Dispatched</Status></UnitLog>
        <UnitLog><DateTime>2024-01-26T10:07:30</DateTime><Status>Arrived</Status></UnitLog>
      </UnitLogs>
      <Dispositions>
        <Disposition><Name>Cleared</Name><Count>1</Count></Disposition>
      </Dispositions>
    </Unit>"""


def _person_xml(last_name: str) -> str:
    return f"""
    <Person>
      <FirstName>Sam</FirstName>
      <LastName>{escape(last_name)}</LastName>
      <HeightInches>70.5</HeightInches>
      <Weight>nil</Weight>
      <Role>Caller</Role>
      <PrimaryCallerFlag>1</PrimaryCallerFlag>
    </Person>"""


def build_call_xml(
    call_id="1001",
    nature="STRUCTURE FIRE",
    units=("E1",),
    persons=("Doe",),
    create_datetime="2024-01-26T10:00:00",
) -> bytes:
    create = (
        f"<CreateDateTime>{create_datetime}</CreateDateTime>" if create_datetime is not None else ""
    )
    call_id_xml = f"<CallId>{call_id}</CallId>" if call_id is not None else ""
    return f"""<?xml version="1.0" encoding="utf-8"?>
<CallExport xmlns="{NAMESPACE}" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
  {call_id_xml}
  <CallNumber>24-000123</CallNumber>
  <CallSource>911</CallSource>
  <NatureOfCall>{escape(nature)}</NatureOfCall>
  {create}
  <ClosedFlag>true</ClosedFlag>
  <CanceledFlag>false</CanceledFlag>
  <AlarmLevel xsi:nil="true" />
  <AgencyContexts>
    <AgencyContext>
      <AgencyType>Fire</AgencyType>
      <CallType>STRUCTURE FIRE</CallType>
      <Priority>1</Priority>
      <ClosedFlag>TRUE</ClosedFlag>
    </AgencyContext>
  </AgencyContexts>
  <Location>
    <FullAddress>100 MAIN ST</FullAddress>
    <City>Springfield</City>
    <LatitudeY>40.123456</LatitudeY>
    <LongitudeX>-89.654321</LongitudeX>
    <PoliceBeat>B4</PoliceBeat>
  </Location>
  <Incidents>
    <Incident>
      <Number>2024-000555</Number>
      <Type>FIRE</Type>
      <CreateDateTime>2024-01-26T10:00:05Z</CreateDateTime>
    </Incident>
  </Incidents>
  <AssignedUnits>{''.join(_unit_xml(unit) for unit in units)}
  </AssignedUnits>
  <Narratives>
    <Narrative>
      <CreateDateTime>2024-01-26T10:02:00.1234567</CreateDateTime>
      <CreateUser>dispatch1</CreateUser>
      <Text>Smoke showing from second floor</Text>
    </Narrative>
  </Narratives>
  <Persons>{''.join(_person_xml(person) for person in persons)}
  </Persons>
  <Vehicles>
    <Vehicle>
      <LicensePlate>ABC123</LicensePlate>
      <Make>Ford</Make>
      <Year>2019</Year>
    </Vehicle>
  </Vehicles>
  <Dispositions>
    <CallDisposition>
      <Name>Fire Extinguished</Name>
      <Count>1</Count>
    </CallDisposition>
  </Dispositions>
</CallExport>
""".encode("utf-8")


@pytest.fixture
def call_xml():
    return build_call_xml
