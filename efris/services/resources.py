"""
Named wrappers over ``Dispatcher.call``, grouped by area.

Each method shapes its parameters, runs request validation where a schema
exists, and picks the encrypt/decrypt flags the interface requires.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from efris.errors import EfrisError
from efris.interfaces.envelope import Envelope
from efris.runtime import full_jitter_delay
from efris.services.clock import TimeSource
from efris.services.dispatcher import Dispatcher
from efris.services.session_key import SessionKeyManager
from efris.services.validator import Validator

logger = logging.getLogger(__name__)


class _Resource:
    def __init__(self, dispatcher: Dispatcher, validator: Validator) -> None:
        self._dispatcher = dispatcher
        self._validator = validator

    def _send(self, key: str, payload: Any = None, *, encrypt: bool, decrypt: bool,
              schema: Optional[str] = None) -> Envelope:
        if schema is not None:
            payload = self._validator.validate(payload, schema)
        envelope = self._dispatcher.call(key, payload, encrypt=encrypt, decrypt=decrypt)
        if schema is not None and envelope.is_success:
            self._validator.validate_response(envelope.content, schema)
        return envelope


class SystemResource(_Resource):
    """Server time, sign-in, session key and time-synchronisation helpers."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        validator: Validator,
        session_keys: SessionKeyManager,
        clock: TimeSource,
    ) -> None:
        super().__init__(dispatcher, validator)
        self._session_keys = session_keys
        self._clock = clock

    def get_server_time(self) -> Envelope:
        """T101: current server time in ``content.currentTime``."""
        return self._send("get_server_time", encrypt=False, decrypt=False, schema="T101")

    def client_init(self, otp: Optional[str] = None) -> Envelope:
        """T102: client initialisation; returns server key material."""
        payload = {"otp": otp} if otp else {}
        return self._send("client_init", payload, encrypt=False, decrypt=False, schema="T102")

    def sign_in(self) -> Envelope:
        """T103: login; adopts the taxpayer id the service reports."""
        envelope = self._send("sign_in", encrypt=False, decrypt=True)
        content = envelope.content if isinstance(envelope.content, dict) else {}
        taxpayer = content.get("taxpayer") or {}
        if taxpayer.get("id"):
            self._dispatcher.set_taxpayer_id(str(taxpayer["id"]))
            logger.debug("Updated taxpayerID from sign_in: %s", self._dispatcher.identity.taxpayer_id)
        return envelope

    def get_symmetric_key(self, force: bool = False) -> Dict[str, Any]:
        """T104: negotiate (or reuse) the session key; returns the exchange content."""
        self._session_keys.fetch(force=force)
        content = dict(self._session_keys.content or {})
        self._validator.validate_response(content, "T104")
        return content

    def refresh_session_key_if_needed(self) -> bool:
        """Negotiate a session key when absent or expired; True if one was fetched."""
        if self._session_keys.is_valid():
            return False
        self._session_keys.fetch(force=self._session_keys.key is not None)
        return True

    def forget_password(self, user_name: str, new_password: str) -> Envelope:
        """T105: reset a user's password."""
        payload = {"userName": user_name, "changedPassword": new_password}
        return self._send("forget_password", payload, encrypt=True, decrypt=False, schema="T105")

    def system_dictionary(self, data: Optional[Dict[str, Any]] = None) -> Envelope:
        """T115: tax rates, currencies and other reference data."""
        return self._send("system_dictionary", data or {}, encrypt=False, decrypt=True)

    def is_time_synced(
        self,
        tolerance_minutes: float = 10,
        max_retries: int = 3,
        base_delay_s: float = 1.0,
        max_delay_s: float = 4.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> bool:
        """
        Compare local time with the server's, retrying a bounded number of times.

        Failures to reach the server count as a failed attempt. Between
        attempts the loop sleeps for a full-jitter backoff delay.
        """
        for attempt in range(max_retries):
            try:
                envelope = self.get_server_time()
                content = envelope.content if isinstance(envelope.content, dict) else {}
                server_time = content.get("currentTime")
                if server_time and TimeSource.is_synchronized(
                    self._clock.now_request_format(), server_time, tolerance_minutes
                ):
                    if attempt > 0:
                        logger.info("Time sync successful after %d attempt(s)", attempt + 1)
                    return True
                logger.warning("Attempt %d: time sync failed (server time %r)", attempt + 1, server_time)
            except EfrisError as exc:
                logger.warning("Attempt %d: time sync check error: %s", attempt + 1, exc)

            if attempt < max_retries - 1:
                sleep(full_jitter_delay(attempt, base_delay_s, max_delay_s))

        logger.error("Time sync failed after %d attempts", max_retries)
        return False


class InvoiceResource(_Resource):
    """Invoices, receipts and credit/debit notes."""

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def fiscalise(self, data: Dict[str, Any]) -> Envelope:
        """T109: upload an invoice, receipt or debit note."""
        return self._send("billing_upload", data, encrypt=True, decrypt=True, schema="T109")

    def fiscalise_batch(self, invoices: List[Dict[str, Any]]) -> Envelope:
        """T129: upload several pre-signed invoices at once."""
        payload = [
            {
                "invoiceContent": inv.get("invoiceContent", ""),
                "invoiceSignature": inv.get("invoiceSignature", ""),
            }
            for inv in invoices
        ]
        return self._send("batch_invoice_upload", payload, encrypt=True, decrypt=True)

    def verify(self, invoice_no: str) -> Envelope:
        """T108: full details of one invoice."""
        return self._send("invoice_details", {"invoiceNo": invoice_no},
                          encrypt=True, decrypt=True, schema="T108")

    def query(self, filters: Dict[str, Any]) -> Envelope:
        """T107: normal invoices/receipts eligible for credit or debit notes."""
        return self._send("invoice_query_normal", filters, encrypt=True, decrypt=True, schema="T107")

    def query_all(self, filters: Dict[str, Any]) -> Envelope:
        """T106: all invoice types, paginated."""
        return self._send("invoice_query_all", filters, encrypt=True, decrypt=True, schema="T106")

    def check(self, invoice_checks: List[Dict[str, Any]]) -> Envelope:
        """T117: batch verification of invoice numbers and types."""
        payload = [
            {"invoiceNo": check["invoiceNo"], "invoiceType": check["invoiceType"]}
            for check in invoice_checks
        ]
        return self._send("invoice_checks", payload, encrypt=True, decrypt=True)

    def remain_details(self, invoice_no: str) -> Envelope:
        """T186: invoice with remaining (uncredited) quantities."""
        return self._send("invoice_remain_details", {"invoiceNo": invoice_no},
                          encrypt=True, decrypt=True, schema="T186")

    # ------------------------------------------------------------------
    # Credit / debit notes
    # ------------------------------------------------------------------

    def apply_credit_note(self, data: Dict[str, Any]) -> Envelope:
        """T110: credit note application (category 101 unless given)."""
        payload = dict(data)
        payload.setdefault("invoiceApplyCategoryCode", "101")
        return self._send("credit_application", payload, encrypt=True, decrypt=True, schema="T110")

    def apply_debit_note(self, data: Dict[str, Any]) -> Envelope:
        """T110: debit note application (category 104)."""
        payload = dict(data)
        payload["invoiceApplyCategoryCode"] = "104"
        return self._send("credit_application", payload, encrypt=True, decrypt=True, schema="T110")

    def query_credit_notes(self, filters: Dict[str, Any]) -> Envelope:
        """T111: credit/debit note application list."""
        return self._send("credit_note_query", filters, encrypt=True, decrypt=True, schema="T111")

    def cancel_credit_note(
        self,
        ori_invoice_id: str,
        invoice_no: str,
        reason_code: str,
        reason: Optional[str] = None,
        cancel_type: str = "104",
    ) -> Envelope:
        """T114: cancel a credit/debit note application."""
        payload = {
            "oriInvoiceId": ori_invoice_id,
            "invoiceNo": invoice_no,
            "reasonCode": reason_code,
            "reason": reason,
            "invoiceApplyCategoryCode": cancel_type,
        }
        return self._send("credit_note_cancel", payload, encrypt=True, decrypt=False, schema="T114")

    def void_application(self, business_key: str, reference_no: str) -> Envelope:
        """T120: void a credit/debit note application."""
        payload = {"businessKey": business_key, "referenceNo": reference_no}
        return self._send("void_application", payload, encrypt=True, decrypt=False)


class TaxpayerResource(_Resource):
    """Taxpayer and branch lookups."""

    def query_by_tin(self, tin: Optional[str] = None, nin_brn: Optional[str] = None) -> Envelope:
        """T119: taxpayer information by TIN or NIN/BRN."""
        payload = {"tin": tin, "ninBrn": nin_brn}
        return self._send("query_taxpayer", payload, encrypt=True, decrypt=True, schema="T119")

    def branches(self, tin: Optional[str] = None) -> Envelope:
        """T138: registered branches."""
        payload = {"tin": tin} if tin else {}
        return self._send("get_branches", payload, encrypt=True, decrypt=True)

    def check_type(self, tin: str, commodity_category_code: Optional[str] = None) -> Envelope:
        """T137: exempt/deemed taxpayer check."""
        payload = {"tin": tin}
        if commodity_category_code:
            payload["commodityCategoryCode"] = commodity_category_code
        return self._send("check_taxpayer_type", payload, encrypt=True, decrypt=True)


class GoodsResource(_Resource):
    """Goods, stock and exchange-rate operations."""

    def upload(self, goods: List[Dict[str, Any]]) -> Envelope:
        """T130: register or update goods and services."""
        return self._send("goods_upload", goods, encrypt=True, decrypt=True)

    def inquire(self, filters: Dict[str, Any]) -> Envelope:
        """T127: goods/services inquiry."""
        return self._send("goods_inquiry", filters, encrypt=True, decrypt=True)

    def query_stock(self, goods_id: str, branch_id: Optional[str] = None) -> Envelope:
        """T128: stock quantity of one item."""
        payload = {"id": goods_id}
        if branch_id:
            payload["branchId"] = branch_id
        return self._send("query_stock", payload, encrypt=True, decrypt=True)

    def maintain_stock(self, data: Dict[str, Any]) -> Envelope:
        """T131: stock increase/decrease."""
        return self._send("stock_maintain", data, encrypt=True, decrypt=True)

    def exchange_rate(self, currency: str, issue_date: Optional[str] = None) -> Envelope:
        """T121: exchange rate of one currency."""
        payload = {"currency": currency}
        if issue_date:
            payload["issueDate"] = issue_date
        return self._send("get_exchange_rate", payload, encrypt=True, decrypt=True, schema="T121")

    def exchange_rates(self, issue_date: Optional[str] = None) -> Envelope:
        """T126: all exchange rates."""
        payload = {"issueDate": issue_date} if issue_date else {}
        return self._send("get_exchange_rates", payload, encrypt=True, decrypt=True)
