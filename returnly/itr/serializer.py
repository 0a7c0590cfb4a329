"""
ITR serializer — ITRData → XML document + JSON document.

Both documents are rendered from one intermediate tree, so they always carry
the same fields and values:

  XML   xml.etree.ElementTree, root <ITR1>/<ITR2> with schemaVersion,
        formName and assessmentYear attributes
  JSON  same tree, keys are the lowerCamelCase projection of the XML names
        (PersonalInfo → personalInfo, PAN → pan, IFSCCode → ifscCode)

Money is printed in whole rupees. Dates are dd/mm/yyyy.

parse_itr_xml reads a document back (defusedxml, entity expansion and DTDs
refused) into the JSON shape with string leaves; documents_equivalent uses it
to confirm the two renderings agree.
"""
from __future__ import annotations

import datetime as dt
import logging
import re
import xml.etree.ElementTree as ET
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Union

import defusedxml.ElementTree as DefusedET

from returnly.engine.money import round_rupees
from returnly.errors import ValidationFailed
from returnly.itr.schemas import (
    HousePropertyDetails,
    ITR1Payload,
    ITR2Payload,
    ITRData,
    ITRDocuments,
)
from returnly.itr.validator import validate_itr_data

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

_ROOT_TAGS = {"ITR-1": "ITR1", "ITR-2": "ITR2"}

# Containers rendered as repeated child elements in XML and arrays in JSON
_LIST_CONTAINERS = frozenset({"Employers", "HouseProperties", "Transactions", "Assets", "TDSDetails"})

_LEADING_CAPS = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]+")


class Repeated(NamedTuple):
    item_tag: str
    items: List["Section"]


Scalar = Union[str, int, bool, None]
Section = Dict[str, Any]   # tag → Scalar | Section | Repeated


# ===========================================================================
# NAME + VALUE PROJECTION
# ===========================================================================

def to_lower_camel(name: str) -> str:
    """XML element name → JSON key. A leading acronym is lower-cased whole."""
    match = _LEADING_CAPS.match(name)
    if not match:
        return name
    head = match.group(0)
    return head.lower() + name[len(head):]


def _json_value(value: Any) -> Scalar:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, Decimal):
        return int(round_rupees(value))
    if isinstance(value, int):
        return value
    if isinstance(value, dt.date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, Enum):
        return value.value
    return str(value)


def _text(value: Scalar) -> str:
    """Leaf text as it appears in XML, from an already-projected JSON value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ===========================================================================
# INTERMEDIATE TREE
# ===========================================================================

def _personal_info(data: ITRData) -> Section:
    identity = data.identity
    section: Section = {
        "Name": identity.name,
        "PAN": identity.pan,
        "DateOfBirth": identity.date_of_birth,
        "Category": identity.category,
        "ResidencyStatus": identity.residency_status,
    }
    if isinstance(data.payload, ITR2Payload) and data.payload.huf_name:
        section["HUFName"] = data.payload.huf_name
    section["Address"] = {
        "AddressLine": identity.address.address_line,
        "City": identity.address.city,
        "State": identity.address.state,
        "Pincode": identity.address.pincode,
    }
    section["ContactInfo"] = {
        "Email": identity.email,
        "Mobile": identity.mobile,
        "Aadhaar": identity.aadhaar,
    }
    return section


def _house_property(prop: HousePropertyDetails) -> Section:
    return {
        "Address": prop.address,
        "SelfOccupied": prop.is_self_occupied,
        "AnnualValue": prop.annual_value,
        "MunicipalTax": prop.municipal_tax_paid,
        "StandardDeduction": prop.standard_deduction,
        "HomeLoanInterest": prop.home_loan_interest,
        "NetIncome": prop.net_income,
    }


def _itr1_income(data: ITRData, payload: ITR1Payload) -> Section:
    income: Section = {
        "Salary": {
            "EmployerName": payload.employer.name,
            "EmployerTAN": payload.employer.tan,
            "EmployerAddress": payload.employer.address,
            "GrossSalary": payload.gross_salary,
            "AllowancesExempt": payload.allowances_exempt,
            "Perquisites": payload.perquisites,
            "ProfitsInLieuOfSalary": payload.profits_in_lieu_of_salary,
            "StandardDeduction": payload.standard_deduction,
            "ProfessionalTax": payload.professional_tax,
            "NetSalary": payload.net_salary,
        },
    }
    if payload.house_property is not None:
        income["HouseProperty"] = _house_property(payload.house_property)
    income["OtherSources"] = {
        "SavingsInterest": payload.interest_from_savings,
        "DepositInterest": payload.interest_from_deposits,
        "Dividend": payload.dividend_income,
        "OtherIncome": payload.other_income,
    }
    income["GrossTotalIncome"] = data.computation.total_income
    return income


def _itr2_income(data: ITRData, payload: ITR2Payload) -> Section:
    return {
        "Salary": {
            "Employers": Repeated("Employer", [
                {
                    "EmployerName": s.employer_name,
                    "EmployerTAN": s.tan,
                    "GrossSalary": s.gross_salary,
                    "TaxDeducted": s.tax_deducted,
                }
                for s in payload.salaries
            ]),
            "GrossSalary": payload.gross_salary,
            "StandardDeduction": payload.standard_deduction,
            "ProfessionalTax": payload.professional_tax,
        },
        "HouseProperty": {
            "HouseProperties": Repeated("Property", [_house_property(p) for p in payload.house_properties]),
            "TotalIncome": payload.house_property_income,
        },
        "CapitalGains": {
            "Transactions": Repeated("Transaction", [
                {
                    "Description": g.asset_description,
                    "PurchaseDate": g.purchase_date,
                    "SaleDate": g.sale_date,
                    "SaleConsideration": g.sale_consideration,
                    "CostOfAcquisition": g.cost_of_acquisition,
                    "CostOfImprovement": g.cost_of_improvement,
                    "TransferExpenses": g.transfer_expenses,
                    "Term": "LongTerm" if g.is_long_term else "ShortTerm",
                    "Gain": g.gain,
                }
                for g in payload.capital_gains
            ]),
            "ShortTermGains": payload.short_term_gains,
            "LongTermGains": payload.long_term_gains,
            "TotalCapitalGains": payload.capital_gains_income,
        },
        "OtherSources": {
            "Interest": payload.interest_income,
            "Dividend": payload.dividend_income,
            "OtherIncome": payload.other_income,
        },
        "ForeignIncome": payload.foreign_income,
        "GrossTotalIncome": data.computation.total_income,
    }


def _tax_computation(data: ITRData) -> Section:
    c = data.computation
    tax = round_rupees(c.tax.total_tax)
    surcharge = round_rupees(c.tax.surcharge)
    # cess takes the rounding remainder so the printed lines add up
    cess = round_rupees(c.tax_liability) - tax - surcharge
    penalties = c.penalties
    return {
        "TotalIncome": c.total_income,
        "TotalDeductions": c.total_deductions,
        "TaxableIncome": c.taxable_income,
        "TaxLiability": tax,
        "Surcharge": surcharge,
        "HealthEducationCess": cess,
        "TotalTaxLiability": c.tax_liability,
        "Interest234A": penalties.section_234a_interest if penalties else Decimal("0"),
        "Interest234B": penalties.section_234b_interest if penalties else Decimal("0"),
        "Interest234C": penalties.section_234c_interest if penalties else Decimal("0"),
        "TotalTaxAndInterest": c.position.total_liability,
    }


def _tax_payments(data: ITRData) -> Section:
    payload = data.payload
    tds: Section = {"TotalTDS": data.payments.tds}
    if isinstance(payload, ITR1Payload):
        q1, q2, q3, q4 = payload.quarterly_tds
        tds["QuarterlyBreakdown"] = {"Q1": q1, "Q2": q2, "Q3": q3, "Q4": q4}
    else:
        tds["TDSDetails"] = Repeated("TDSEntry", [
            {
                "DeductorName": e.deductor_name,
                "TAN": e.tan,
                "IncomePaid": e.income_paid,
                "TaxDeducted": e.tax_deducted,
            }
            for e in payload.tds_entries
        ])

    position = data.computation.position
    if position.is_refund:
        amount, kind = position.refund_amount, "Refund"
    elif position.additional_due > 0:
        amount, kind = position.additional_due, "Demand"
    else:
        amount, kind = Decimal("0"), "Nil"

    section: Section = {"TDS": tds}
    if isinstance(payload, ITR2Payload):
        section["TCS"] = payload.tcs
    section.update({
        "AdvanceTax": data.payments.total_advance_tax,
        "SelfAssessmentTax": data.payments.self_assessment_tax,
        "TotalTaxPaid": data.computation.total_tax_paid,
        "RefundOrDemand": {"Amount": amount, "Type": kind},
    })
    return section


def _document_tree(data: ITRData) -> Section:
    payload = data.payload
    c = data.computation
    tree: Section = {
        "PersonalInfo": _personal_info(data),
        "FilingDetails": {
            "FinancialYear": data.financial_year,
            "TaxRegime": data.regime,
        },
    }
    if isinstance(payload, ITR1Payload):
        tree["IncomeDetails"] = _itr1_income(data, payload)
        other = c.total_deductions - payload.standard_deduction - payload.professional_tax - payload.allowances_exempt
    else:
        tree["IncomeDetails"] = _itr2_income(data, payload)
        other = c.total_deductions - payload.standard_deduction - payload.professional_tax
    tree["Deductions"] = {
        "StandardDeduction": payload.standard_deduction,
        "ProfessionalTax": payload.professional_tax,
        "OtherDeductions": other,
        "TotalDeductions": c.total_deductions,
    }
    tree["TaxComputation"] = _tax_computation(data)
    tree["TaxPayments"] = _tax_payments(data)
    tree["BankDetails"] = {
        "AccountNumber": data.bank.account_number,
        "IFSCCode": data.bank.ifsc_code,
        "BankName": data.bank.bank_name,
    }
    if isinstance(payload, ITR2Payload):
        tree["ForeignAssets"] = {
            "HasForeignAssets": payload.has_foreign_assets,
            "Assets": Repeated("Asset", [
                {
                    "AssetType": a.asset_type,
                    "Country": a.country,
                    "Value": a.value,
                    "Currency": a.currency,
                }
                for a in payload.foreign_assets
            ]),
        }
    return tree


def _root_attributes(data: ITRData) -> Dict[str, str]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "formName": data.form_type.value,
        "assessmentYear": data.assessment_year,
    }


# ===========================================================================
# RENDERERS
# ===========================================================================

def _to_json(section: Section) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for tag, value in section.items():
        key = to_lower_camel(tag)
        if isinstance(value, Repeated):
            out[key] = [_to_json(item) for item in value.items]
        elif isinstance(value, dict):
            out[key] = _to_json(value)
        else:
            out[key] = _json_value(value)
    return out


def _fill_element(parent: ET.Element, section: Section) -> None:
    for tag, value in section.items():
        child = ET.SubElement(parent, tag)
        if isinstance(value, Repeated):
            for item in value.items:
                _fill_element(ET.SubElement(child, value.item_tag), item)
        elif isinstance(value, dict):
            _fill_element(child, value)
        else:
            child.text = _text(_json_value(value))


def _render_xml(root_tag: str, attributes: Dict[str, str], tree: Section) -> str:
    root = ET.Element(root_tag, attributes)
    _fill_element(root, tree)
    ET.indent(root)
    return XML_DECLARATION + "\n" + ET.tostring(root, encoding="unicode")


def serialize_itr_data(data: ITRData) -> ITRDocuments:
    """
    Render data as XML and JSON.

    Raises:
        ValidationFailed: the data breaks a validation rule. Nothing is rendered.
    """
    report = validate_itr_data(data)
    if not report.is_valid:
        raise ValidationFailed(report.errors)

    root_tag = _ROOT_TAGS[data.payload.form_type]
    attributes = _root_attributes(data)
    tree = _document_tree(data)

    json_content = {to_lower_camel(root_tag): {
        **{to_lower_camel(k): v for k, v in attributes.items()},
        **_to_json(tree),
    }}
    xml_content = _render_xml(root_tag, attributes, tree)

    logger.info("Serialized %s for AY %s", data.form_type.value, data.assessment_year)
    return ITRDocuments(form_type=data.form_type, xml_content=xml_content, json_content=json_content)


# ===========================================================================
# READ-BACK
# ===========================================================================

def _element_to_json(element: ET.Element) -> Any:
    if element.tag in _LIST_CONTAINERS:
        return [_element_to_json(child) for child in element]
    children = list(element)
    if not children and not element.attrib:
        return element.text or ""
    out: Dict[str, Any] = {to_lower_camel(k): v for k, v in element.attrib.items()}
    for child in children:
        out[to_lower_camel(child.tag)] = _element_to_json(child)
    return out


def parse_itr_xml(xml_content: str) -> Dict[str, Any]:
    """
    XML document → JSON-shaped dict with string leaves.

    Raises:
        defusedxml.DefusedXmlException: the document declares entities or a DTD.
        xml.etree.ElementTree.ParseError: malformed XML.
    """
    root = DefusedET.fromstring(xml_content, forbid_dtd=True)
    return {to_lower_camel(root.tag): _element_to_json(root)}


def _stringify(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _stringify(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify(v) for v in value]
    return _text(value)


def documents_equivalent(xml_content: str, json_content: Dict[str, Any]) -> bool:
    """True when the XML and JSON renderings carry the same fields and values."""
    return parse_itr_xml(xml_content) == _stringify(json_content)


__all__ = [
    "SCHEMA_VERSION",
    "to_lower_camel",
    "serialize_itr_data",
    "parse_itr_xml",
    "documents_equivalent",
]
