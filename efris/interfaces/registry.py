"""
Operation key to EFRIS interface code table.

The table is immutable and process-wide. Any key absent from it is a
configuration error, never a network error.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from efris.errors import APIError

SESSION_KEY_INTERFACE = "T104"

INTERFACES: Mapping[str, str] = MappingProxyType({
    # System / authentication
    "get_server_time": "T101",
    "client_init": "T102",
    "sign_in": "T103",
    "get_symmetric_key": SESSION_KEY_INTERFACE,
    "forget_password": "T105",
    # Invoices
    "invoice_query_all": "T106",
    "invoice_query_normal": "T107",
    "invoice_details": "T108",
    "billing_upload": "T109",
    "batch_invoice_upload": "T129",
    # Credit / debit notes
    "credit_application": "T110",
    "credit_note_query": "T111",
    "credit_note_details": "T112",
    "credit_note_approval": "T113",
    "credit_note_cancel": "T114",
    "invoice_checks": "T117",
    "query_credit_application": "T118",
    "void_application": "T120",
    "query_invalid_credit": "T122",
    # Taxpayer / branch
    "query_taxpayer": "T119",
    "check_taxpayer_type": "T137",
    "get_branches": "T138",
    "query_principal_agent": "T180",
    # Commodity / excise / dictionary
    "system_dictionary": "T115",
    "query_commodity_category": "T123",
    "query_commodity_category_page": "T124",
    "query_excise_duty": "T125",
    "commodity_incremental": "T134",
    "query_commodity_by_date": "T146",
    "query_hs_codes": "T185",
    # Exchange rates
    "get_exchange_rate": "T121",
    "get_exchange_rates": "T126",
    # Goods / services
    "goods_inquiry": "T127",
    "query_stock": "T128",
    "goods_upload": "T130",
    "query_goods_by_code": "T144",
    # Stock management
    "stock_maintain": "T131",
    "stock_transfer": "T139",
    "stock_records_query": "T145",
    "stock_records_query_alt": "T147",
    "stock_records_detail": "T148",
    "stock_adjust_records": "T149",
    "stock_adjust_detail": "T160",
    "negative_stock_config": "T177",
    "stock_transfer_records": "T183",
    "stock_transfer_detail": "T184",
    # EDC / fuel
    "query_fuel_type": "T162",
    "upload_shift_info": "T163",
    "upload_edc_disconnect": "T164",
    "update_buyer_details": "T166",
    "edc_invoice_query": "T167",
    "query_fuel_pump_version": "T168",
    "query_pump_nozzle_tank": "T169",
    "query_edc_location": "T170",
    "query_edc_uom_rate": "T171",
    "upload_nozzle_status": "T172",
    "query_edc_device_version": "T173",
    # Agent / USSD
    "ussd_account_create": "T175",
    "upload_device_status": "T176",
    "efd_transfer": "T178",
    "query_agent_relation": "T179",
    "upload_frequent_contacts": "T181",
    "get_frequent_contacts": "T182",
    # Export / customs
    "invoice_remain_details": "T186",
    "query_fdn_status": "T187",
    # System utilities
    "z_report_upload": "T116",
    "exception_log_upload": "T132",
    "tcs_upgrade_download": "T133",
    "get_tcs_latest_version": "T135",
    "certificate_upload": "T136",
})


def resolve(operation_key: str) -> str:
    """Return the interface code for ``operation_key`` or raise APIError (400)."""
    try:
        return INTERFACES[operation_key]
    except KeyError:
        raise APIError(f"Interface [{operation_key}] not configured", status_code=400) from None
