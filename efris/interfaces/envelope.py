"""
Wire envelope exchanged with the EFRIS service.

Every block of the ``data`` / ``globalInfo`` / ``returnStateInfo`` envelope
is a dataclass. ``as_dict()`` renders the camelCase wire keys; ``from_dict()``
reads a remote block and treats a missing or non-object block as empty.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

APP_ID = "AP04"
PROTOCOL_VERSION = "1.1.20191201"
REQUEST_CODE = "TP"
RESPONSE_CODE = "TA"
DEVICE_MAC = "FFFFFFFFFFFF"
RESPONSE_DATE_FORMAT = "dd/MM/yyyy"
RESPONSE_TIME_FORMAT = "dd/MM/yyyy HH:mm:ss"

# dataDescription flag values
CODE_TYPE_PLAIN = "0"
CODE_TYPE_BINARY = "1"
ENCRYPT_CODE_PLAIN = "1"
ENCRYPT_CODE_AES = "2"
ZIP_CODE_NONE = "0"
ZIP_CODE_GZIP = "1"

SUCCESS_RETURN_CODE = "00"
SUCCESS_RETURN_MESSAGE = "SUCCESS"


def _mapping(raw: Any) -> Dict[str, Any]:
    return raw if isinstance(raw, dict) else {}


@dataclass
class DataDescription:
    """The (binary-framed, encrypted, compressed) flag triple."""

    code_type: str = CODE_TYPE_PLAIN
    encrypt_code: str = ENCRYPT_CODE_PLAIN
    zip_code: str = ZIP_CODE_NONE

    @property
    def is_binary(self) -> bool:
        return self.code_type == CODE_TYPE_BINARY

    @property
    def is_encrypted(self) -> bool:
        return self.encrypt_code == ENCRYPT_CODE_AES

    @property
    def is_compressed(self) -> bool:
        return self.zip_code == ZIP_CODE_GZIP

    def as_dict(self) -> Dict[str, Any]:
        return {
            "codeType": self.code_type,
            "encryptCode": self.encrypt_code,
            "zipCode": self.zip_code,
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> DataDescription:
        raw = _mapping(raw)
        return cls(
            code_type=str(raw.get("codeType", CODE_TYPE_PLAIN)),
            # Remote omits encryptCode on some plain responses.
            encrypt_code=str(raw.get("encryptCode", "0")),
            zip_code=str(raw.get("zipCode", ZIP_CODE_NONE)),
        )


@dataclass
class Payload:
    """The ``data`` block: content, signature and description flags."""

    content: Any = ""
    signature: str = ""
    description: DataDescription = field(default_factory=DataDescription)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "signature": self.signature,
            "dataDescription": self.description.as_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> Payload:
        raw = _mapping(raw)
        return cls(
            content=raw.get("content") or "",
            signature=raw.get("signature") or "",
            description=DataDescription.from_dict(raw.get("dataDescription")),
        )


@dataclass
class ExtendField:
    """Nested extension block carrying response-format hints."""

    operator_name: str = "admin"
    response_date_format: str = RESPONSE_DATE_FORMAT
    response_time_format: str = RESPONSE_TIME_FORMAT
    reference_no: str = ""
    offline_error_code: str = ""
    offline_error_msg: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "responseDateFormat": self.response_date_format,
            "responseTimeFormat": self.response_time_format,
            "referenceNo": self.reference_no,
            "operatorName": self.operator_name,
            "offlineInvoiceException": {
                "errorCode": self.offline_error_code,
                "errorMsg": self.offline_error_msg,
            },
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> ExtendField:
        raw = _mapping(raw)
        offline = _mapping(raw.get("offlineInvoiceException"))
        return cls(
            operator_name=raw.get("operatorName") or "",
            response_date_format=raw.get("responseDateFormat") or RESPONSE_DATE_FORMAT,
            response_time_format=raw.get("responseTimeFormat") or RESPONSE_TIME_FORMAT,
            reference_no=raw.get("referenceNo") or "",
            offline_error_code=offline.get("errorCode") or "",
            offline_error_msg=offline.get("errorMsg") or "",
        )


@dataclass
class GlobalInfo:
    """The metadata block of an envelope."""

    interface_code: str
    data_exchange_id: str
    request_time: str
    tin: str
    device_no: str
    brn: str = ""
    taxpayer_id: str = "1"
    user_name: str = "admin"
    longitude: str = "32.5825"
    latitude: str = "0.3476"
    app_id: str = APP_ID
    version: str = PROTOCOL_VERSION
    request_code: str = REQUEST_CODE
    response_code: str = RESPONSE_CODE
    device_mac: str = DEVICE_MAC
    agent_type: str = "0"
    extend_field: ExtendField = field(default_factory=ExtendField)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "appId": self.app_id,
            "version": self.version,
            "dataExchangeId": self.data_exchange_id,
            "interfaceCode": self.interface_code,
            "requestCode": self.request_code,
            "requestTime": self.request_time,
            "responseCode": self.response_code,
            "userName": self.user_name,
            "deviceMAC": self.device_mac,
            "deviceNo": self.device_no,
            "tin": self.tin,
            "brn": self.brn,
            "taxpayerID": self.taxpayer_id,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "agentType": self.agent_type,
            "extendField": self.extend_field.as_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> GlobalInfo:
        raw = _mapping(raw)
        return cls(
            interface_code=raw.get("interfaceCode") or "",
            data_exchange_id=raw.get("dataExchangeId") or "",
            request_time=raw.get("requestTime") or "",
            tin=raw.get("tin") or "",
            device_no=raw.get("deviceNo") or "",
            brn=raw.get("brn") or "",
            taxpayer_id=raw.get("taxpayerID") or "",
            user_name=raw.get("userName") or "",
            longitude=raw.get("longitude") or "",
            latitude=raw.get("latitude") or "",
            app_id=raw.get("appId") or APP_ID,
            version=raw.get("version") or PROTOCOL_VERSION,
            request_code=raw.get("requestCode") or REQUEST_CODE,
            response_code=raw.get("responseCode") or RESPONSE_CODE,
            device_mac=raw.get("deviceMAC") or DEVICE_MAC,
            agent_type=raw.get("agentType") or "0",
            extend_field=ExtendField.from_dict(raw.get("extendField")),
        )


@dataclass
class ReturnStateInfo:
    """Status block; populated by the remote side only."""

    return_code: str = ""
    return_message: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {"returnCode": self.return_code, "returnMessage": self.return_message}

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> ReturnStateInfo:
        raw = _mapping(raw)
        return cls(
            return_code=str(raw.get("returnCode") or ""),
            return_message=str(raw.get("returnMessage") or ""),
        )


@dataclass
class Envelope:
    """A full request or response envelope."""

    data: Payload = field(default_factory=Payload)
    global_info: Optional[GlobalInfo] = None
    return_state: ReturnStateInfo = field(default_factory=ReturnStateInfo)

    @property
    def content(self) -> Any:
        return self.data.content

    @property
    def return_code(self) -> str:
        return self.return_state.return_code

    @property
    def return_message(self) -> str:
        return self.return_state.return_message

    @property
    def is_success(self) -> bool:
        return (
            self.return_state.return_code == SUCCESS_RETURN_CODE
            or self.return_state.return_message == SUCCESS_RETURN_MESSAGE
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data.as_dict(),
            "globalInfo": self.global_info.as_dict() if self.global_info else {},
            "returnStateInfo": self.return_state.as_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> Envelope:
        raw = _mapping(raw)
        global_info = raw.get("globalInfo")
        return cls(
            data=Payload.from_dict(raw.get("data")),
            global_info=GlobalInfo.from_dict(global_info) if isinstance(global_info, dict) and global_info else None,
            return_state=ReturnStateInfo.from_dict(raw.get("returnStateInfo")),
        )
