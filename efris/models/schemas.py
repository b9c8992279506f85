"""
Request/response schemas for the EFRIS interfaces, as pydantic models.

Python attributes are snake_case; the wire names (camelCase) are the field
aliases, and models accept either. Unknown fields are dropped, so a
validated payload is a filtered copy containing only recognised fields.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Annotated, Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------

TIN = Annotated[str, Field(min_length=10, max_length=20, pattern=r"^[A-Z0-9]{10,20}$")]
NinBrn = Annotated[str, Field(min_length=1, max_length=100)]
DeviceNo = Annotated[str, Field(min_length=1, max_length=20)]
DtRequest = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")]
DtResponse = Annotated[str, Field(pattern=r"^\d{2}/\d{2}/\d{4} \d{2}:\d{2}:\d{2}$")]
DateRequest = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")]
Flag = Annotated[str, Field(pattern=r"^[01]$")]

Code1 = Annotated[str, Field(min_length=1, max_length=1)]
Code2 = Annotated[str, Field(min_length=1, max_length=2)]
Code3 = Annotated[str, Field(min_length=1, max_length=3)]
Code6 = Annotated[str, Field(min_length=1, max_length=6)]
Code10 = Annotated[str, Field(min_length=1, max_length=10)]
Code18 = Annotated[str, Field(min_length=1, max_length=18)]
Code20 = Annotated[str, Field(min_length=1, max_length=20)]
Code30 = Annotated[str, Field(min_length=1, max_length=30)]
Code50 = Annotated[str, Field(min_length=1, max_length=50)]
Code100 = Annotated[str, Field(min_length=1, max_length=100)]
Code128 = Annotated[str, Field(min_length=1, max_length=128)]
Code200 = Annotated[str, Field(min_length=1, max_length=200)]
Code256 = Annotated[str, Field(min_length=1, max_length=256)]
Code500 = Annotated[str, Field(min_length=1, max_length=500)]
Code1000 = Annotated[str, Field(min_length=1, max_length=1000)]
Code1024 = Annotated[str, Field(min_length=1, max_length=1024)]

# Signed decimal amounts: (integer digits, decimal places)
Amount16_2 = Annotated[str, Field(pattern=r"^[-+]?\d{1,16}(\.\d{0,2})?$")]
Amount16_4 = Annotated[str, Field(pattern=r"^[-+]?\d{1,16}(\.\d{0,4})?$")]
Amount20_8 = Annotated[str, Field(pattern=r"^[-+]?\d{1,20}(\.\d{0,8})?$")]


class EfrisModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------

class T101Response(EfrisModel):
    current_time: DtResponse


class T102Request(EfrisModel):
    otp: Optional[Code6] = None


class T104Response(EfrisModel):
    # Misspelt by the service.
    passowrd_des: str = Field(alias="passowrdDes")
    sign: Optional[str] = None


class T105Request(EfrisModel):
    user_name: Code200
    changed_password: Code200


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

class T106Request(EfrisModel):
    ori_invoice_no: Optional[Code20] = None
    invoice_no: Optional[Code20] = None
    device_no: Optional[DeviceNo] = None
    buyer_tin: Optional[TIN] = None
    buyer_nin_brn: Optional[NinBrn] = None
    buyer_legal_name: Optional[Code256] = None
    combine_keywords: Optional[Code256] = None
    invoice_type: Optional[Code1] = None
    invoice_kind: Optional[Code1] = None
    is_invalid: Optional[Flag] = None
    is_refund: Optional[Flag] = None
    start_date: Optional[DateRequest] = None
    end_date: Optional[DateRequest] = None
    page_no: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
    reference_no: Optional[Code50] = None
    branch_name: Optional[Code500] = None
    query_type: Optional[Code1] = "1"
    data_source: Optional[Code3] = None
    seller_tin_or_nin: Optional[Code100] = None
    seller_legal_or_business_name: Optional[Code256] = None


class T107Request(EfrisModel):
    invoice_no: Optional[Code20] = None
    device_no: Optional[DeviceNo] = None
    buyer_tin: Optional[TIN] = None
    buyer_legal_name: Optional[Code256] = None
    invoice_type: Optional[Code1] = None
    start_date: Optional[DateRequest] = None
    end_date: Optional[DateRequest] = None
    page_no: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
    branch_name: Optional[Code500] = None


class T108Request(EfrisModel):
    invoice_no: Code20


class SellerDetails(EfrisModel):
    tin: TIN
    nin_brn: Optional[NinBrn] = None
    legal_name: Code256
    business_name: Optional[Code256] = None
    address: Optional[Code500] = None
    mobile_phone: Optional[Code30] = None
    line_phone: Optional[Code30] = None
    email_address: Code50
    place_of_business: Optional[Code500] = None
    reference_no: Optional[Code50] = None
    branch_id: Optional[Code18] = None
    is_check_reference_no: Optional[Flag] = "0"


class BasicInformation(EfrisModel):
    invoice_no: Optional[Code20] = None
    antifake_code: Optional[Code20] = None
    device_no: DeviceNo
    issued_date: DtRequest
    operator: Code100
    currency: Code10
    ori_invoice_id: Optional[Code20] = None
    invoice_type: Code1
    invoice_kind: Code1
    data_source: Code3
    invoice_industry_code: Optional[Code3] = None
    is_batch: Optional[Flag] = "0"


class BuyerDetails(EfrisModel):
    buyer_tin: Optional[TIN] = None
    buyer_nin_brn: Optional[NinBrn] = None
    buyer_passport_num: Optional[Code20] = None
    buyer_legal_name: Optional[Code256] = None
    buyer_business_name: Optional[Code256] = None
    buyer_address: Optional[Code500] = None
    buyer_email: Optional[Code50] = None
    buyer_mobile_phone: Optional[Code30] = None
    buyer_line_phone: Optional[Code30] = None
    buyer_place_of_busi: Optional[Code500] = None
    buyer_type: Code1
    buyer_citizenship: Optional[Code128] = None
    buyer_sector: Optional[Code200] = None
    buyer_reference_no: Optional[Code50] = None
    non_resident_flag: Optional[Flag] = "0"
    delivery_terms_code: Optional[Code3] = None


class GoodsItem(EfrisModel):
    item: Code200
    item_code: Code50
    qty: Optional[Amount20_8] = None
    unit_of_measure: Code3
    unit_price: Optional[Amount20_8] = None
    total: Amount16_2
    tax_rate: str
    tax: Amount16_2
    discount_total: Optional[Amount16_2] = None
    discount_tax_rate: Optional[str] = None
    order_number: int = Field(ge=0)
    discount_flag: Code1
    deemed_flag: Code1
    excise_flag: Code1
    category_id: Optional[Code18] = None
    category_name: Optional[Code1024] = None
    goods_category_id: Code18
    goods_category_name: Code200
    excise_rate: Optional[str] = None
    excise_rule: Optional[Code1] = None
    excise_tax: Optional[Amount16_2] = None
    pack: Optional[Amount20_8] = None
    stick: Optional[Amount20_8] = None
    excise_unit: Optional[Code3] = None
    excise_currency: Optional[Code10] = None
    excise_rate_name: Optional[Code500] = None
    vat_applicable_flag: Optional[Flag] = "1"
    hs_code: Optional[Code50] = None
    hs_name: Optional[Code1000] = None


class TaxDetail(EfrisModel):
    tax_category_code: Code2
    net_amount: Amount16_4
    tax_rate: str
    tax_amount: Amount16_4
    gross_amount: Amount16_4
    excise_unit: Optional[Code3] = None
    excise_currency: Optional[Code10] = None
    tax_rate_name: Optional[Code500] = None


class Summary(EfrisModel):
    net_amount: Amount16_2
    tax_amount: Amount16_2
    gross_amount: Amount16_2
    item_count: int = Field(ge=0)
    mode_code: Code1
    remarks: Optional[Code500] = None
    qr_code: Optional[Code500] = None


class PayWay(EfrisModel):
    payment_mode: Code3
    payment_amount: Amount16_2
    order_number: Code1


class InvoiceExtend(EfrisModel):
    reason: Optional[Code1024] = None
    reason_code: Optional[Code3] = None


class T109BillingUpload(EfrisModel):
    seller_details: SellerDetails
    basic_information: BasicInformation
    buyer_details: Optional[BuyerDetails] = None
    goods_details: List[GoodsItem] = Field(min_length=1)
    tax_details: List[TaxDetail]
    summary: Summary
    pay_way: Optional[List[PayWay]] = None
    extend: Optional[InvoiceExtend] = None


class T109Response(EfrisModel):
    seller_details: Dict[str, Any]
    basic_information: Dict[str, Any]
    summary: Dict[str, Any]


# ---------------------------------------------------------------------------
# Credit / debit notes
# ---------------------------------------------------------------------------

class T110CreditApplication(EfrisModel):
    ori_invoice_id: Code20
    ori_invoice_no: Code20
    reason_code: Code3
    reason: Optional[Code1024] = None
    application_time: DtRequest
    invoice_apply_category_code: Code3
    currency: Code10
    contact_name: Optional[Code200] = None
    contact_mobile_num: Optional[Code30] = None
    contact_email: Optional[Code50] = None
    source: Code3
    remarks: Optional[Code500] = None
    sellers_reference_no: Optional[Code50] = None
    goods_details: List[Dict[str, Any]] = Field(min_length=1)
    tax_details: List[Dict[str, Any]]
    summary: Dict[str, Any]
    pay_way: Optional[List[Dict[str, Any]]] = None
    buyer_details: Optional[BuyerDetails] = None


class T110Response(EfrisModel):
    reference_no: str


class T111Request(EfrisModel):
    reference_no: Optional[Code50] = None
    ori_invoice_no: Optional[Code20] = None
    invoice_no: Optional[Code20] = None
    combine_keywords: Optional[Code256] = None
    approve_status: Optional[Code3] = None
    query_type: Code1 = "1"
    invoice_apply_category_code: Optional[Code3] = None
    start_date: Optional[DateRequest] = None
    end_date: Optional[DateRequest] = None
    page_no: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class T114Request(EfrisModel):
    ori_invoice_id: Code20
    invoice_no: Code20
    reason_code: Code3
    reason: Optional[Code1024] = None
    invoice_apply_category_code: Code3


# ---------------------------------------------------------------------------
# Taxpayer / exchange rates
# ---------------------------------------------------------------------------

class T119Request(EfrisModel):
    tin: Optional[TIN] = None
    nin_brn: Optional[NinBrn] = None


class T121Request(EfrisModel):
    currency: Code10
    issue_date: Optional[DateRequest] = None


class T186Request(EfrisModel):
    invoice_no: Code20


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SchemaEntry:
    """Request and response models registered for one interface code."""

    request: Optional[Type[EfrisModel]] = None
    response: Optional[Type[EfrisModel]] = None


SCHEMAS: Mapping[str, SchemaEntry] = MappingProxyType({
    "T101": SchemaEntry(response=T101Response),
    "T102": SchemaEntry(request=T102Request),
    "T104": SchemaEntry(response=T104Response),
    "T105": SchemaEntry(request=T105Request),
    "T106": SchemaEntry(request=T106Request),
    "T107": SchemaEntry(request=T107Request),
    "T108": SchemaEntry(request=T108Request),
    "T109": SchemaEntry(request=T109BillingUpload, response=T109Response),
    "T110": SchemaEntry(request=T110CreditApplication, response=T110Response),
    "T111": SchemaEntry(request=T111Request),
    "T114": SchemaEntry(request=T114Request),
    "T119": SchemaEntry(request=T119Request),
    "T121": SchemaEntry(request=T121Request),
    "T186": SchemaEntry(request=T186Request),
})
