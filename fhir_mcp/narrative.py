"""
Narrative generation.

Builds the XHTML `text.div` of a FHIR resource from its structured content,
in one of three styles. Resource types without a dedicated summary get a
generic one naming the type, id and status.
"""

import html
from typing import Any, Callable, Dict, List, Optional

XHTML_OPEN = '<div xmlns="http://www.w3.org/1999/xhtml">'
XHTML_CLOSE = "</div>"

STYLES = ("clinical", "patient-friendly", "technical")
DEFAULT_STYLE = "clinical"


def _escape(value: Any) -> str:
    if value is None or value == "":
        return ""
    return html.escape(str(value))


def _format_date(value: Optional[str]) -> str:
    # Date part only; times are not summarized
    if not value:
        return ""
    return _escape(str(value)[:10])


def _name(names: Any) -> str:
    if not names:
        return "Unknown"
    name = names[0] if isinstance(names, list) else names
    if not isinstance(name, dict):
        return _escape(name) or "Unknown"
    if name.get("text"):
        return _escape(name["text"])
    parts: List[str] = list(name.get("given") or [])
    if name.get("family"):
        parts.append(name["family"])
    return _escape(" ".join(str(p) for p in parts)) or "Unknown"


def _concept_text(concept: Any, fallback: str) -> str:
    """CodeableConcept text, else the first coding's display."""
    if not isinstance(concept, dict):
        return fallback
    if concept.get("text"):
        return concept["text"]
    codings = concept.get("coding") or []
    if codings and isinstance(codings[0], dict) and codings[0].get("display"):
        return codings[0]["display"]
    return fallback


def _wrap(body: str) -> str:
    return f"{XHTML_OPEN}{body}{XHTML_CLOSE}"


def _row(label: str, value: str) -> str:
    return f"<p><strong>{label}:</strong> {value}</p>"


def _patient(resource: Dict[str, Any], clinical: bool) -> str:
    name = _name(resource.get("name"))
    birth_date = _format_date(resource.get("birthDate"))
    gender = _escape(resource.get("gender"))

    if not clinical:
        text = f"<p>This record is for {name}"
        if birth_date:
            text += f", born on {birth_date}"
        if gender:
            text += f", {gender}"
        return text + ".</p>"

    out = "<h3>Patient Summary</h3>" + _row("Name", name)
    if birth_date:
        out += _row("Date of Birth", birth_date)
    if gender:
        out += _row("Gender", gender)
    if resource.get("id"):
        out += _row("Patient ID", _escape(resource["id"]))
    identifiers = [i for i in resource.get("identifier") or [] if isinstance(i, dict) and i.get("value")]
    if identifiers:
        out += "<p><strong>Identifiers:</strong></p><ul>"
        for identifier in identifiers:
            system = _escape(identifier.get("system"))
            prefix = f"{system}: " if system else ""
            out += f"<li>{prefix}{_escape(identifier['value'])}</li>"
        out += "</ul>"
    return out


def _observation(resource: Dict[str, Any], clinical: bool) -> str:
    code = _escape(_concept_text(resource.get("code"), "Observation"))
    effective = _format_date(resource.get("effectiveDateTime"))
    quantity = resource.get("valueQuantity") or {}
    value = ""
    if quantity.get("value") is not None:
        value = _escape(quantity["value"])
        if quantity.get("unit"):
            value += f" {_escape(quantity['unit'])}"
    elif resource.get("valueString"):
        value = _escape(resource["valueString"])

    if not clinical:
        text = f"<p>{code} observation"
        if effective:
            text += f" recorded on {effective}"
        if value:
            text += f": {value}"
        return text + ".</p>"

    out = f"<h3>Observation: {code}</h3>"
    if effective:
        out += _row("Date", effective)
    if value:
        out += _row("Value", value)
    interpretation = resource.get("interpretation") or []
    if interpretation:
        label = _concept_text(interpretation[0], "")
        if label:
            out += _row("Interpretation", _escape(label))
    return out


def _encounter(resource: Dict[str, Any], clinical: bool) -> str:
    types = resource.get("type") or []
    kind = _escape(_concept_text(types[0] if types else None, "Healthcare encounter"))
    status = _escape(resource.get("status"))
    period = resource.get("period") or {}
    start = _format_date(period.get("start"))
    end = _format_date(period.get("end"))

    if not clinical:
        text = f"<p>{kind} with status {status}"
        if start:
            text += f" starting {start}"
        return text + ".</p>"

    out = f"<h3>Encounter: {kind}</h3>" + _row("Status", status)
    if start:
        out += _row("Start", start)
    if end:
        out += _row("End", end)
    return out


def _condition(resource: Dict[str, Any], clinical: bool) -> str:
    code = _escape(_concept_text(resource.get("code"), "Condition"))
    codings = (resource.get("clinicalStatus") or {}).get("coding") or []
    clinical_status = _escape(codings[0].get("code")) if codings and isinstance(codings[0], dict) else ""
    onset = _format_date(resource.get("onsetDateTime"))

    if not clinical:
        text = f"<p>{code}"
        if clinical_status:
            text += f" ({clinical_status})"
        if onset:
            text += f" diagnosed on {onset}"
        return text + ".</p>"

    out = f"<h3>Condition: {code}</h3>"
    if clinical_status:
        out += _row("Clinical Status", clinical_status)
    if onset:
        out += _row("Onset", onset)
    return out


def _medication_request(resource: Dict[str, Any], clinical: bool) -> str:
    medication = _escape(_concept_text(resource.get("medicationCodeableConcept"), "Medication"))
    status = _escape(resource.get("status"))
    authored = _format_date(resource.get("authoredOn"))

    if not clinical:
        text = f"<p>{medication} prescription with status {status}"
        if authored:
            text += f" prescribed on {authored}"
        return text + ".</p>"

    out = f"<h3>Medication Request: {medication}</h3>" + _row("Status", status)
    if authored:
        out += _row("Prescribed", authored)
    dosage = resource.get("dosageInstruction") or []
    if dosage and isinstance(dosage[0], dict) and dosage[0].get("text"):
        out += _row("Instructions", _escape(dosage[0]["text"]))
    return out


def _diagnostic_report(resource: Dict[str, Any], clinical: bool) -> str:
    code = _escape(_concept_text(resource.get("code"), "Diagnostic Report"))
    status = _escape(resource.get("status"))
    effective = _format_date(resource.get("effectiveDateTime"))

    if not clinical:
        text = f"<p>{code} report with status {status}"
        if effective:
            text += f" from {effective}"
        return text + ".</p>"

    out = f"<h3>Diagnostic Report: {code}</h3>" + _row("Status", status)
    if effective:
        out += _row("Date", effective)
    if resource.get("conclusion"):
        out += _row("Conclusion", _escape(resource["conclusion"]))
    return out


_GENERATORS: Dict[str, Callable[[Dict[str, Any], bool], str]] = {
    "patient": _patient,
    "observation": _observation,
    "encounter": _encounter,
    "condition": _condition,
    "medicationrequest": _medication_request,
    "diagnosticreport": _diagnostic_report,
}


def _generic(resource_type: str, resource: Dict[str, Any], clinical: bool) -> str:
    kind = _escape(resource_type)
    if not clinical:
        text = f"<p>This is a {kind} resource"
        if resource.get("id"):
            text += f" with ID {_escape(resource['id'])}"
        return text + ".</p>"

    out = f"<h3>{kind} Resource</h3>" + _row("Resource Type", kind)
    if resource.get("id"):
        out += _row("ID", _escape(resource["id"]))
    if resource.get("status"):
        out += _row("Status", _escape(resource["status"]))
    return out


def generate(resource_type: str, resource: Optional[Dict[str, Any]], style: str = DEFAULT_STYLE) -> str:
    """
    Render the narrative XHTML for a resource.

    'clinical' produces a headed, labelled summary; 'patient-friendly' and
    'technical' produce a single sentence. Every value taken from the
    resource is HTML-escaped.
    """
    if style not in STYLES:
        raise ValueError(f"Unknown narrative style '{style}'. Use one of: {', '.join(STYLES)}")
    resource = resource or {}
    clinical = style == "clinical"
    generator = _GENERATORS.get(resource_type.lower())
    body = generator(resource, clinical) if generator else _generic(resource_type, resource, clinical)
    return _wrap(body)


def with_narrative(resource_type: str, resource: Dict[str, Any], style: str = DEFAULT_STYLE) -> Dict[str, Any]:
    """Copy of the resource with a generated `text` element, unless it already has one."""
    if resource.get("text"):
        return resource
    return {**resource, "text": {"status": "generated", "div": generate(resource_type, resource, style)}}
