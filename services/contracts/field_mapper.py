"""
Field Mapper

Maps a customer record onto the PDF form field names of a document type.

The three known document types have hand-authored tables whose keys are
the literal AcroForm field names found in the templates. Any other
document type goes through a generic alias table (firstName, zip, apr, ...).

Every known-type field name is always present in the result; values the
customer record lacks are None, which the PDF filler skips.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional, Union

from .transforms import add_months, add_years, format_us_date, parse_date, to_text
from .types import CheckboxGroup, Customer, DocumentType

logger = logging.getLogger(__name__)

CustomerLike = Union[Customer, Dict[str, Any]]

HD_DOCS_DATE_FIELDS = [
    'txtTransactionDate',
    'txtServiceProviderDate',
    'txtServiceProviderDateHS106',
    'txtCustomerSignatureDate',
    'txtServiceProviderSignatureDate',
    'txtApproximateStartDateHS106',
    'txtApproximateFinishDateHS106',
    'txtContractDate',
    'txtDate',
]

# Days the customer has to cancel (HD docs right-to-cancel notice)
CANCELLATION_DAYS = 3

MEMBERSHIP_TIERS = {
    'platinum': 'PlatinumBox',
    'gold': 'GoldBox',
    'silver': 'SilverBox',
}

MEMBERSHIP_YEARS = {
    'platinum': 3,
    'gold': 2,
    'silver': 1,
}

DEFAULT_MEMBERSHIP_TIER = 'platinum'

# PDF field name -> customer attribute, for document types without a table
GENERIC_ALIASES = {
    'firstName': 'firstName',
    'first_name': 'firstName',
    'lastName': 'lastName',
    'last_name': 'lastName',
    'email': 'email',
    'phone': 'phone',
    'phoneNumber': 'phone',
    'address': 'address',
    'street': 'address',
    'city': 'city',
    'state': 'state',
    'zip': 'zipCode',
    'zipCode': 'zipCode',
    'postalCode': 'zipCode',
    'equipment': 'equipment',
    'equipmentDescription': 'equipment',
    'equipment_desc': 'equipment',
    'financeCompany': 'financeCompany',
    'finance_company': 'financeCompany',
    'lender': 'financeCompany',
    'financier': 'financeCompany',
    'interestRate': 'interestRate',
    'interest_rate': 'interestRate',
    'rate': 'interestRate',
    'apr': 'interestRate',
    'monthlyPayment': 'monthlyPayment',
    'monthly_payment': 'monthlyPayment',
    'payment': 'monthlyPayment',
    'paymentAmount': 'monthlyPayment',
    'totalEquipmentPrice': 'totalEquipmentPrice',
    'total_price': 'totalEquipmentPrice',
    'equipmentPrice': 'totalEquipmentPrice',
    'totalPrice': 'totalEquipmentPrice',
    'amount': 'totalEquipmentPrice',
}

FULL_NAME_FIELDS = ['fullName', 'customerName', 'name', 'client_name']


def _as_customer(customer: CustomerLike) -> Customer:
    if isinstance(customer, Customer):
        return customer
    return Customer.from_dict(customer or {})


def membership_tier(customer: CustomerLike) -> str:
    """Selected membership tier, lowercased; defaults to platinum."""
    tier = _as_customer(customer).get('membershipType') or DEFAULT_MEMBERSHIP_TIER
    return str(tier).strip().lower()


class FieldMapper:
    """
    Builds {pdf field name: value} maps from customer data.

    Usage:
        values = FieldMapper.build(customer, 'charge-slip')
        group = FieldMapper.checkbox_group(customer, 'membership-plan')
    """

    @classmethod
    def build(
        cls,
        customer: CustomerLike,
        document_type: str,
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Build the field map for a document type.

        Never raises: unknown types use the generic alias table.
        """
        customer = _as_customer(customer)
        today = today or date.today()

        if document_type == DocumentType.HD_DOCS.value:
            values = cls._hd_docs(customer, today)
        elif document_type == DocumentType.MEMBERSHIP_PLAN.value:
            values = cls._membership_plan(customer, today)
        elif document_type == DocumentType.CHARGE_SLIP.value:
            values = cls._charge_slip(customer, today)
        else:
            logger.debug(f"No field table for '{document_type}', using generic aliases")
            values = cls._generic(customer)

        full_name = customer.full_name or None
        for field_name in FULL_NAME_FIELDS:
            values.setdefault(field_name, full_name)

        return values

    @classmethod
    def checkbox_group(cls, customer: CustomerLike, document_type: str) -> Optional[CheckboxGroup]:
        """Membership tier checkboxes for the membership plan, else None."""
        if document_type != DocumentType.MEMBERSHIP_PLAN.value:
            return None
        return CheckboxGroup(options=dict(MEMBERSHIP_TIERS), selected=membership_tier(customer))

    @staticmethod
    def _hd_docs(customer: Customer, today: date) -> Dict[str, Any]:
        price = customer.get('totalEquipmentPrice')
        values = {
            'txtCustomerFirstName': customer.get('firstName'),
            'txtCustomerLastName': customer.get('lastName'),
            'txtCustomerAddress': customer.get('address'),
            'txtCustomerCity': customer.get('city'),
            'txtCustomerState': customer.get('state'),
            'txtCustomerZip': customer.get('zipCode'),
            'txtCustomerEmailAddress': customer.get('email'),
            'txtCustomerHomePhoneNbr': customer.get('phone'),
            'txtCustomerName': customer.full_name or None,
            'txtContractPriceHS106': price,
            'txtRemainingContractBalance106': price,
            'txtSalespersonName': customer.get('salespersonName', ''),
            'txtAuthorizedRepresentativeName': customer.get('authorizedRepresentative', ''),
            'txtServiceProviderLicenseNumber': customer.get('licenseNumber', ''),
        }

        scope_lines = [
            f"Equipment: {to_text(customer.get('equipment'))}",
            f"Finance Company: {to_text(customer.get('financeCompany'))}",
            f"Estimated Monthly Payment: {to_text(customer.get('monthlyPayment'))}",
            f"Interest: {to_text(customer.get('interestRate'))}%",
        ]
        if customer.get('promotions'):
            scope_lines.append(f"Promotions/Offers: {customer.get('promotions')}")
        if customer.get('notes'):
            scope_lines.append(str(customer.get('notes')))
        values['txtScope1'] = "\n".join(scope_lines)

        today_text = format_us_date(today)
        for field_name in HD_DOCS_DATE_FIELDS:
            values[field_name] = today_text

        values['txtNotLaterThanMidnightOfDate'] = format_us_date(
            today + timedelta(days=CANCELLATION_DAYS)
        )
        return values

    @staticmethod
    def _membership_plan(customer: Customer, today: date) -> Dict[str, Any]:
        tier = membership_tier(customer)
        years = MEMBERSHIP_YEARS.get(tier, MEMBERSHIP_YEARS[DEFAULT_MEMBERSHIP_TIER])
        today_text = format_us_date(today)

        address = None
        address_parts = [customer.get(key) for key in ('address', 'city', 'state', 'zipCode')]
        if any(address_parts):
            street, city, state, zip_code = (to_text(part) for part in address_parts)
            address = f"{street}, {city}, {state} {zip_code}".strip(', ')

        start = parse_date(customer.get('membershipStartDate')) or today
        end = add_years(start, years)

        return {
            'Customer Name': customer.full_name or None,
            'Customer Address': address,
            'Customer Phone': customer.get('phone'),
            'Customer Email': customer.get('email'),
            'Finance Company': customer.get('financeCompany', ''),
            'Date of Finance Approval': customer.get('financeApprovalDate') or today_text,
            'Date of Installation': (
                customer.get('installDate') or customer.get('installationDate') or today_text
            ),
            'Equipment Installed': customer.get('equipment', ''),
            'Membership Start Date': format_us_date(start),
            'Membership End Date': format_us_date(end),
            'Date': today_text,
        }

    @staticmethod
    def _charge_slip(customer: Customer, today: date) -> Dict[str, Any]:
        price = customer.get('totalEquipmentPrice')
        card_date = add_months(today, 1)

        return {
            'CustomerName': customer.full_name or None,
            'CustomerAddress': customer.get('address'),
            'City': customer.get('city'),
            'State': customer.get('state'),
            'Zip': customer.get('zipCode'),
            'CustomerPhone': customer.get('phone'),
            'CustomerEmail': customer.get('email'),
            'Total': price,
            'TotalSales': price,
            'Balance': price,
            'Row1Total': price,
            'MonthlyPayment': customer.get('monthlyPayment'),
            'APR': customer.get('interestRate'),
            'Row1Eq': customer.get('equipment'),
            'Row2Eq': f"Finance Company: {to_text(customer.get('financeCompany'))}",
            'Row1': '1',
            'SalesTax': '0',
            'Date': format_us_date(today),
            'SaleYear': str(today.year),
            'SaleMonth': str(today.month),
            'SaleDay': str(today.day),
            'CCYear': str(card_date.year),
            'CCMonth': str(card_date.month),
            'CCDay': str(card_date.day),
        }

    @staticmethod
    def _generic(customer: Customer) -> Dict[str, Any]:
        values = {}
        for field_name, attribute in GENERIC_ALIASES.items():
            value = customer.get(attribute)
            if value:
                values[field_name] = value
        return values
