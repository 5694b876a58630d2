"""Map a parsed call export document onto the typed call graph."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, Optional
from xml.etree.ElementTree import Element

from cep.ingestion.loader import ParsedDocument
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
    UnitLog,
    UnitPersonnel,
    Vehicle,
)
from cep.utils.coerce import INT64_MAX, as_bool, as_decimal, as_int, as_text
from cep.utils.time import parse_cad_datetime

CALL_EXPORT_NAMESPACE = "http://www.newworldsystems.com/Aegis/CAD/Peripheral/CallExport/2011/02"
XSI_NIL = "{http://www.w3.org/2001/XMLSchema-instance}nil"


class CallMappingError(ValueError):
    """Raised when a document lacks what is needed to build a call graph."""


def map_call_graph(document: ParsedDocument | Element) -> CallGraph:
    """Build a CallGraph from an export document."""
    root = document.root if isinstance(document, ParsedDocument) else document

    call_id = as_int(*_leaf(root, "CallId"), maximum=INT64_MAX)
    if call_id is None:
        raise CallMappingError("Document has no usable CallId")

    call = Call(
        call_id=call_id,
        call_number=_text(root, "CallNumber"),
        call_source=_text(root, "CallSource"),
        caller_name=_text(root, "CallerName"),
        caller_phone=_text(root, "CallerPhone"),
        nature_of_call=_text(root, "NatureOfCall"),
        additional_info=_text(root, "AdditionalInfo"),
        create_datetime=_datetime(root, "CreateDateTime") or datetime.now().replace(microsecond=0),
        close_datetime=_datetime(root, "CloseDateTime"),
        created_by=_text(root, "CreatedBy"),
        closed_flag=_flag(root, "ClosedFlag"),
        canceled_flag=_flag(root, "CanceledFlag"),
        alarm_level=_int(root, "AlarmLevel"),
        emd_code=_text(root, "EmdCode"),
        fire_controlled_time=_datetime(root, "FireControlledTime"),
        xml_data=document_to_dict(root),
    )

    location_el = _child(root, "Location")
    return CallGraph(
        call=call,
        agency_contexts=[_agency_context(el) for el in _items(root, "AgencyContexts", "AgencyContext")],
        location=_location(location_el) if location_el is not None else None,
        incidents=[_incident(el) for el in _items(root, "Incidents", "Incident")],
        units=[_unit(el) for el in _items(root, "AssignedUnits", "Unit")],
        narratives=[_narrative(el) for el in _items(root, "Narratives", "Narrative")],
        persons=[_person(el) for el in _items(root, "Persons", "Person")],
        vehicles=[_vehicle(el) for el in _items(root, "Vehicles", "Vehicle")],
        dispositions=[_disposition(el) for el in _items(root, "Dispositions", "CallDisposition")],
    )


def _agency_context(el: Element) -> AgencyContext:
    return AgencyContext(
        agency_type=_text(el, "AgencyType"),
        call_type=_text(el, "CallType"),
        priority=_text(el, "Priority"),
        status=_text(el, "Status"),
        dispatcher=_text(el, "Dispatcher"),
        created_datetime=_datetime(el, "CreatedDateTime"),
        closed_datetime=_datetime(el, "ClosedDateTime"),
        closed_flag=_flag(el, "ClosedFlag"),
        canceled_flag=_flag(el, "CanceledFlag"),
        radio_channel=_text(el, "RadioChannel"),
        emd_case_number=_text(el, "EmdCaseNumber"),
        emd_code=_text(el, "EmdCode"),
    )


def _location(el: Element) -> Location:
    return Location(
        full_address=_text(el, "FullAddress"),
        house_number=_text(el, "HouseNumber"),
        house_number_suffix=_text(el, "HouseNumberSuffix"),
        prefix_directional=_text(el, "PrefixDirectional"),
        prefix_type=_text(el, "PrefixType"),
        street_name=_text(el, "StreetName"),
        street_type=_text(el, "StreetType"),
        street_directional=_text(el, "StreetDirectional"),
        city=_text(el, "City"),
        state=_text(el, "State"),
        zip=_text(el, "Zip"),
        zip4=_text(el, "Zip4"),
        venue=_text(el, "Venue"),
        latitude_y=_decimal(el, "LatitudeY"),
        longitude_x=_decimal(el, "LongitudeX"),
        common_name=_text(el, "CommonName"),
        police_beat=_text(el, "PoliceBeat"),
        ems_district=_text(el, "EmsDistrict"),
        fire_quadrant=_text(el, "FireQuadrant"),
        census_tract=_text(el, "CensusTract"),
        station_area=_text(el, "StationArea"),
        rural_grid=_text(el, "RuralGrid"),
        nearest_cross_streets=_text(el, "NearestCrossStreets"),
        additional_info=_text(el, "AdditionalInfo"),
        lat_lon_description=_text(el, "LatLonDescription"),
        qualifier=_text(el, "Qualifier"),
        custom_layer=_text(el, "CustomLayer"),
        police_ori=_text(el, "PoliceOri"),
        ems_ori=_text(el, "EmsOri"),
        fire_ori=_text(el, "FireOri"),
        x_street_name=_text(el, "XStreetName"),
        x_street_type=_text(el, "XStreetType"),
        x_prefix_directional=_text(el, "XPrefixDirectional"),
        x_street_directional=_text(el, "XStreetDirectional"),
        x_prefix_type=_text(el, "XPrefixType"),
    )


def _incident(el: Element) -> Incident:
    return Incident(
        incident_number=_text(el, "Number"),
        incident_type=_text(el, "Type"),
        type_description=_text(el, "TypeDescription"),
        agency_type=_text(el, "AgencyType"),
        case_number=_text(el, "CaseNumber"),
        jurisdiction=_text(el, "Jurisdiction"),
        create_datetime=_datetime(el, "CreateDateTime"),
    )


def _unit(el: Element) -> Unit:
    return Unit(
        unit_number=_text(el, "UnitNumber"),
        unit_type=_text(el, "Type"),
        is_primary=_flag(el, "IsPrimary"),
        jurisdiction=_text(el, "Jurisdiction"),
        assigned_datetime=_datetime(el, "AssignedDateTime"),
        dispatch_datetime=_datetime(el, "DispatchDateTime"),
        enroute_datetime=_datetime(el, "EnrouteDateTime"),
        arrive_datetime=_datetime(el, "ArriveDateTime"),
        staged_datetime=_datetime(el, "StagedDateTime"),
        at_patient_datetime=_datetime(el, "AtPatientDateTime"),
        transport_datetime=_datetime(el, "TransportDateTime"),
        at_hospital_datetime=_datetime(el, "AtHospitalDateTime"),
        depart_hospital_datetime=_datetime(el, "DepartHospitalDateTime"),
        clear_datetime=_datetime(el, "ClearDateTime"),
        personnel=[_personnel(p) for p in _items(el, "Personnel", "UnitPersonnel")],
        logs=[_unit_log(log) for log in _items(el, "UnitLogs", "UnitLog")],
        dispositions=[_disposition(d) for d in _items(el, "Dispositions", "Disposition")],
    )


def _personnel(el: Element) -> UnitPersonnel:
    return UnitPersonnel(
        first_name=_text(el, "FirstName"),
        middle_name=_text(el, "MiddleName"),
        last_name=_text(el, "LastName"),
        id_number=_text(el, "IDNumber"),
        shield_number=_text(el, "ShieldNumber"),
        is_primary_officer=_flag(el, "IsPrimaryOfficer"),
        jurisdiction=_text(el, "Jurisdiction"),
    )


def _unit_log(el: Element) -> UnitLog:
    return UnitLog(log_datetime=_datetime(el, "DateTime"), status=_text(el, "Status"))


def _disposition(el: Element) -> Disposition:
    return Disposition(
        disposition_name=_text(el, "Name"),
        description=_text(el, "Description"),
        count=_int(el, "Count"),
        disposition_datetime=_datetime(el, "DateTime"),
    )


def _narrative(el: Element) -> Narrative:
    return Narrative(
        create_datetime=_datetime(el, "CreateDateTime"),
        create_user=_text(el, "CreateUser"),
        narrative_type=_text(el, "Type"),
        text=_text(el, "Text"),
        restriction=_text(el, "Restriction"),
    )


def _person(el: Element) -> Person:
    return Person(
        first_name=_text(el, "FirstName"),
        middle_name=_text(el, "MiddleName"),
        last_name=_text(el, "LastName"),
        name_suffix=_text(el, "NameSuffix"),
        date_of_birth=_datetime(el, "DateOfBirth"),
        sex=_text(el, "Sex"),
        race=_text(el, "Race"),
        height_inches=_decimal(el, "HeightInches"),
        weight=_decimal(el, "Weight"),
        eye_color=_text(el, "EyeColor"),
        hair_color=_text(el, "HairColor"),
        address=_text(el, "Address"),
        contact_phone=_text(el, "ContactPhone"),
        role=_text(el, "Role"),
        primary_caller_flag=_flag(el, "PrimaryCallerFlag"),
        license_number=_text(el, "LicenseNumber"),
        license_state=_text(el, "LicenseState"),
        ssn=_text(el, "SSN"),
        global_subject_id=_text(el, "GlobalSubjectId"),
    )


def _vehicle(el: Element) -> Vehicle:
    return Vehicle(
        license_plate=_text(el, "LicensePlate"),
        license_state=_text(el, "LicenseState"),
        make=_text(el, "Make"),
        model=_text(el, "Model"),
        year=_int(el, "Year"),
        color=_text(el, "Color"),
        vin=_text(el, "VIN"),
        vehicle_type=_text(el, "Type"),
    )


def document_to_dict(el: Element) -> dict[str, Any]:
    """Serialize an element tree into JSON-ready data for audit storage.

    Children are keyed by local name; repeated names collapse into lists and
    attributes are kept under ``@attributes``.
    """
    result: dict[str, Any] = {}
    if el.attrib:
        result["@attributes"] = {_local(key): value for key, value in el.attrib.items()}

    for child in el:
        name = _local(child.tag)
        value = _element_value(child)
        if name in result:
            existing = result[name]
            if not isinstance(existing, list):
                existing = result[name] = [existing]
            existing.append(value)
        else:
            result[name] = value
    return result


def _element_value(el: Element) -> Any:
    if len(el) or el.attrib:
        value = document_to_dict(el)
        text = (el.text or "").strip()
        if text and not len(el):
            value["#text"] = el.text
        return value
    return el.text if el.text else None


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(parent: Element, name: str) -> Optional[Element]:
    for child in parent:
        if _local(child.tag) == name:
            return child
    return None


def _items(parent: Element, container: str, item: str) -> Iterator[Element]:
    holder = _child(parent, container)
    if holder is None:
        return iter(())
    return (child for child in holder if _local(child.tag) == item)


def _leaf(parent: Element, name: str) -> tuple[Optional[str], bool]:
    el = _child(parent, name)
    if el is None:
        return None, False
    return el.text or "", el.get(XSI_NIL, "").strip().lower() == "true"


def _text(parent: Element, name: str) -> Optional[str]:
    value, nil = _leaf(parent, name)
    return None if nil else as_text(value)


def _flag(parent: Element, name: str) -> bool:
    value, _ = _leaf(parent, name)
    return as_bool(value)


def _int(parent: Element, name: str) -> Optional[int]:
    return as_int(*_leaf(parent, name))


def _decimal(parent: Element, name: str) -> Optional[Decimal]:
    return as_decimal(*_leaf(parent, name))


def _datetime(parent: Element, name: str) -> Optional[datetime]:
    return parse_cad_datetime(*_leaf(parent, name))
