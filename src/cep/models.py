"""Core data models for the call export graph and ledger."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Record(BaseModel):
    """Base for mapped rows; unknown attributes are rejected."""

    model_config = ConfigDict(extra="forbid")


class Call(Record):
    """Root dispatch call, keyed externally by call_id."""

    call_id: int
    call_number: Optional[str] = None
    call_source: Optional[str] = None
    caller_name: Optional[str] = None
    caller_phone: Optional[str] = None
    nature_of_call: Optional[str] = None
    additional_info: Optional[str] = None
    create_datetime: datetime
    close_datetime: Optional[datetime] = None
    created_by: Optional[str] = None
    closed_flag: bool = False
    canceled_flag: bool = False
    alarm_level: Optional[int] = None
    emd_code: Optional[str] = None
    fire_controlled_time: Optional[datetime] = None
    xml_data: dict[str, Any] = Field(default_factory=dict)


class AgencyContext(Record):
    agency_type: Optional[str] = None
    call_type: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    dispatcher: Optional[str] = None
    created_datetime: Optional[datetime] = None
    closed_datetime: Optional[datetime] = None
    closed_flag: bool = False
    canceled_flag: bool = False
    radio_channel: Optional[str] = None
    emd_case_number: Optional[str] = None
    emd_code: Optional[str] = None


class Location(Record):
    full_address: Optional[str] = None
    house_number: Optional[str] = None
    house_number_suffix: Optional[str] = None
    prefix_directional: Optional[str] = None
    prefix_type: Optional[str] = None
    street_name: Optional[str] = None
    street_type: Optional[str] = None
    street_directional: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    zip4: Optional[str] = None
    venue: Optional[str] = None
    latitude_y: Optional[Decimal] = None
    longitude_x: Optional[Decimal] = None
    common_name: Optional[str] = None
    police_beat: Optional[str] = None
    ems_district: Optional[str] = None
    fire_quadrant: Optional[str] = None
    census_tract: Optional[str] = None
    station_area: Optional[str] = None
    rural_grid: Optional[str] = None
    nearest_cross_streets: Optional[str] = None
    additional_info: Optional[str] = None
    lat_lon_description: Optional[str] = None
    qualifier: Optional[str] = None
    custom_layer: Optional[str] = None
    police_ori: Optional[str] = None
    ems_ori: Optional[str] = None
    fire_ori: Optional[str] = None
    x_street_name: Optional[str] = None
    x_street_type: Optional[str] = None
    x_prefix_directional: Optional[str] = None
    x_street_directional: Optional[str] = None
    x_prefix_type: Optional[str] = None


class Incident(Record):
    incident_number: Optional[str] = None
    incident_type: Optional[str] = None
    type_description: Optional[str] = None
    agency_type: Optional[str] = None
    case_number: Optional[str] = None
    jurisdiction: Optional[str] = None
    create_datetime: Optional[datetime] = None


class UnitPersonnel(Record):
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    id_number: Optional[str] = None
    shield_number: Optional[str] = None
    is_primary_officer: bool = False
    jurisdiction: Optional[str] = None


class UnitLog(Record):
    log_datetime: Optional[datetime] = None
    status: Optional[str] = None


class Disposition(Record):
    """Disposition entry; shared shape for unit and call dispositions."""

    disposition_name: Optional[str] = None
    description: Optional[str] = None
    count: Optional[int] = None
    disposition_datetime: Optional[datetime] = None


class Unit(Record):
    """Responding unit with its lifecycle timestamps and nested records."""

    unit_number: Optional[str] = None
    unit_type: Optional[str] = None
    is_primary: bool = False
    jurisdiction: Optional[str] = None
    assigned_datetime: Optional[datetime] = None
    dispatch_datetime: Optional[datetime] = None
    enroute_datetime: Optional[datetime] = None
    arrive_datetime: Optional[datetime] = None
    staged_datetime: Optional[datetime] = None
    at_patient_datetime: Optional[datetime] = None
    transport_datetime: Optional[datetime] = None
    at_hospital_datetime: Optional[datetime] = None
    depart_hospital_datetime: Optional[datetime] = None
    clear_datetime: Optional[datetime] = None
    personnel: list[UnitPersonnel] = Field(default_factory=list)
    logs: list[UnitLog] = Field(default_factory=list)
    dispositions: list[Disposition] = Field(default_factory=list)


class Narrative(Record):
    create_datetime: Optional[datetime] = None
    create_user: Optional[str] = None
    narrative_type: Optional[str] = None
    text: Optional[str] = None
    restriction: Optional[str] = None


class Person(Record):
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    name_suffix: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    sex: Optional[str] = None
    race: Optional[str] = None
    height_inches: Optional[Decimal] = None
    weight: Optional[Decimal] = None
    eye_color: Optional[str] = None
    hair_color: Optional[str] = None
    address: Optional[str] = None
    contact_phone: Optional[str] = None
    role: Optional[str] = None
    primary_caller_flag: bool = False
    license_number: Optional[str] = None
    license_state: Optional[str] = None
    ssn: Optional[str] = None
    global_subject_id: Optional[str] = None


class Vehicle(Record):
    license_plate: Optional[str] = None
    license_state: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    vin: Optional[str] = None
    vehicle_type: Optional[str] = None


class CallGraph(BaseModel):
    """A call and every child collection mapped from one export document."""

    call: Call
    agency_contexts: list[AgencyContext] = Field(default_factory=list)
    location: Optional[Location] = None
    incidents: list[Incident] = Field(default_factory=list)
    units: list[Unit] = Field(default_factory=list)
    narratives: list[Narrative] = Field(default_factory=list)
    persons: list[Person] = Field(default_factory=list)
    vehicles: list[Vehicle] = Field(default_factory=list)
    dispositions: list[Disposition] = Field(default_factory=list)

    def row_count(self) -> int:
        """Number of rows this graph occupies once written."""
        count = 1 + len(self.agency_contexts) + len(self.incidents)
        count += len(self.narratives) + len(self.persons) + len(self.vehicles)
        count += len(self.dispositions)
        if self.location is not None:
            count += 1
        for unit in self.units:
            count += 1 + len(unit.personnel) + len(unit.logs) + len(unit.dispositions)
        return count


class LedgerEntry(BaseModel):
    """One processed_files row."""

    filename: str
    file_hash: str
    status: Literal["success", "failed"]
    records_processed: Optional[int] = None
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None


class ProcessResult(BaseModel):
    """Outcome of processing one export file."""

    filename: str
    file_hash: Optional[str] = None
    success: bool
    duplicate: bool = False
    call_id: Optional[int] = None
    call_pk: Optional[int] = None
    records_processed: int = 0
    error: Optional[str] = None
