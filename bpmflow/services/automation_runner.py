"""Automation runner — executes an activity's integration steps in order.

Steps are plain dicts taken from ``Activity.action_config``::

    {"steps": [
        {"id": "1", "type": "webhook", "method": "POST", "url": "...",
         "body": "{\"monto\": \"{{monto}}\"}", "output_variable": "erp"},
        {"id": "2", "type": "email", "email_to": "{{correo}}", ...},
    ]}

Every string in a step is scanned for ``{{key}}`` tokens, resolved first
against the running outputs (seeded from the process data, so later steps see
earlier results) and then against the organization settings. Unresolved
tokens stay as written.

The first failing step stops the run. A failed run is a value
(``AutomationResult.success = False``), never an exception.
"""

from __future__ import annotations

import enum
import json
import logging
import math
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from bpmflow.config import settings
from bpmflow.core.logging_config import log_context
from bpmflow.core.metrics import automation_steps_total
from bpmflow.models.workflow import ActionType, Activity
from bpmflow.services.email_service import EmailMessage, SmtpOverride, dispatch_email
from bpmflow.services.finance_bridge import FinancePayload, send_to_finance

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\{\{([^}]+)\}\}")


class StepKind(str, enum.Enum):
    WEBHOOK = "webhook"
    FINANCE = "finance"
    EMAIL = "email"

    @classmethod
    def parse(cls, value: str | None) -> StepKind:
        if value == cls.FINANCE.value:
            return cls.FINANCE
        if value == cls.EMAIL.value:
            return cls.EMAIL
        # soap / rest / webhook / unset all go through the generic HTTP step
        if value not in (None, "", "webhook", "rest", "soap", ActionType.NONE.value):
            logger.warning("Unknown automation step type %r, running as webhook", value)
        return cls.WEBHOOK


class StepError(Exception):
    """A step could not complete; the message ends up in the process history."""


@dataclass
class AutomationResult:
    success: bool
    outputs: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    steps_run: int = 0


def stringify_value(value: Any) -> str:
    """Render a value the way it is stored and substituted: JSON for structures."""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, bool)) or value is None:
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def substitute_variables(text: Any, *scopes: Mapping[str, Any]) -> str:
    """Replace ``{{key}}`` tokens with the first scope that defines ``key``."""
    if text is None:
        return ""
    if not isinstance(text, str):
        return stringify_value(text)

    def _replace(match: re.Match) -> str:
        key = match.group(1).strip()
        for scope in scopes:
            if key in scope and scope[key] is not None:
                return stringify_value(scope[key])
        return match.group(0)

    return _TOKEN.sub(_replace, text)


def steps_from_activity(activity: Activity) -> list[dict[str, Any]]:
    """Normalise an activity's action_config into an ordered list of steps."""
    if not activity.has_automation:
        return []
    config = activity.action_config or {}
    steps = config.get("steps")
    if isinstance(steps, list):
        return [s for s in steps if isinstance(s, dict)]
    # Legacy single-step config
    step = {"id": "1", **config}
    step.setdefault("type", activity.action_type)
    return [step]


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "ssl", "tls")


def _int_or_none(value: str) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "Tiempo de espera agotado"
    return str(exc) or exc.__class__.__name__


StepHandler = Callable[
    [httpx.AsyncClient, Mapping[str, Any], dict[str, Any], Mapping[str, Any]],
    Awaitable[None],
]


class AutomationRunner:
    """Runs automation steps against process data and organization settings.

    Pass ``client`` to reuse a configured ``httpx.AsyncClient`` (tests use one
    backed by ``httpx.MockTransport``); otherwise each run opens its own client
    bounded by ``AUTOMATION_TIMEOUT_SECONDS``.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self._client = client
        self.timeout = timeout if timeout is not None else settings.AUTOMATION_TIMEOUT_SECONDS
        self._handlers: dict[StepKind, StepHandler] = {
            StepKind.FINANCE: self._run_finance,
            StepKind.EMAIL: self._run_email,
            StepKind.WEBHOOK: self._run_webhook,
        }

    async def run(
        self,
        steps: list[Mapping[str, Any]],
        process_data: Mapping[str, Any],
        org_settings: Mapping[str, Any] | None = None,
    ) -> AutomationResult:
        if self._client is not None:
            return await self._run_steps(self._client, steps, process_data, org_settings or {})
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            return await self._run_steps(client, steps, process_data, org_settings or {})

    async def _run_steps(
        self,
        client: httpx.AsyncClient,
        steps: list[Mapping[str, Any]],
        process_data: Mapping[str, Any],
        org_settings: Mapping[str, Any],
    ) -> AutomationResult:
        outputs: dict[str, Any] = dict(process_data)

        for index, step in enumerate(steps):
            step_id = str(step.get("id") or index + 1)
            kind = StepKind.parse(step.get("type"))
            try:
                await self._handlers[kind](client, step, outputs, org_settings)
            except Exception as exc:
                automation_steps_total.labels(kind=kind.value, status="failure").inc()
                logger.warning(
                    "Automation step %s (%s) failed: %s",
                    step_id,
                    kind.value,
                    _describe(exc),
                    extra=log_context(step_id=step_id),
                )
                return AutomationResult(
                    success=False,
                    outputs=outputs,
                    error=f"Error en paso {step_id}: {_describe(exc)}",
                    steps_run=index,
                )
            automation_steps_total.labels(kind=kind.value, status="success").inc()

        return AutomationResult(success=True, outputs=outputs, steps_run=len(steps))

    # ── Step kinds ──────────────────────────────────────────────────

    async def _run_finance(self, client, step, outputs, org_settings) -> None:
        def sub(value: Any) -> str:
            return substitute_variables(value, outputs, org_settings)

        amount_text = sub(step.get("amount") or "{{amount}}").strip()
        try:
            amount = float(amount_text)
        except ValueError:
            raise StepError(f"Monto inválido: {amount_text!r}") from None
        if not math.isfinite(amount):
            raise StepError(f"Monto inválido: {amount_text!r}")

        payload = FinancePayload(
            api_key=sub(step.get("api_key")),
            finance_url=sub(step.get("finance_url")),
            date=sub(step.get("date") or "{{date}}"),
            amount=amount,
            description=sub(step.get("description") or "{{description}}"),
            movement_type=sub(step.get("movement_type") or "expense"),
            category=sub(step.get("category") or "Varios"),
            provider_name=sub(step.get("provider")),
            concept_id=sub(step.get("concept_id")),
        )
        result = await send_to_finance(client, payload)
        outputs[step.get("output_variable") or "finance_result"] = result

    async def _run_email(self, client, step, outputs, org_settings) -> None:
        def sub(value: Any) -> str:
            return substitute_variables(value, outputs, org_settings)

        message = EmailMessage(
            to=sub(step.get("email_to") or step.get("to")),
            cc=sub(step.get("email_cc") or step.get("cc")),
            subject=sub(step.get("email_subject") or step.get("subject")),
            body=sub(step.get("email_body") or step.get("body")),
            smtp=SmtpOverride(
                host=sub(step.get("smtp_host")),
                port=_int_or_none(sub(step.get("smtp_port"))),
                user=sub(step.get("smtp_user")),
                password=sub(step.get("smtp_pass")),
                secure=_truthy(sub(step.get("smtp_secure"))),
            ),
        )
        result = await dispatch_email(client, message, bridge_url=sub(step.get("bridge_url")) or None)
        if step.get("output_variable"):
            outputs[step["output_variable"]] = result

    async def _run_webhook(self, client, step, outputs, org_settings) -> None:
        def sub(value: Any) -> str:
            return substitute_variables(value, outputs, org_settings)

        method = (step.get("method") or "POST").upper()
        url = sub(step.get("url"))
        if not url:
            raise StepError("URL no configurada")

        raw_body = step.get("body") or ""
        if method == "GET":
            content_type = "application/json"
        elif isinstance(raw_body, str) and raw_body.lstrip().startswith("<"):
            content_type = "application/xml"
        else:
            content_type = "application/json"

        headers = {"Content-Type": content_type}
        extra_headers = step.get("headers")
        if isinstance(extra_headers, Mapping):
            headers.update({str(k): sub(v) for k, v in extra_headers.items()})

        token = sub(step.get("auth_token"))
        auth_type = (step.get("auth_type") or "none").lower()
        if auth_type == "bearer" and token:
            headers["Authorization"] = f"Bearer {token}"
        elif auth_type == "basic" and token:
            headers["Authorization"] = f"Basic {token}"

        resp = await client.request(
            method,
            url,
            headers=headers,
            content=None if method == "GET" else sub(raw_body),
        )
        if not resp.is_success:
            raise StepError(f"HTTP {resp.status_code}: {resp.text}")

        output_variable = step.get("output_variable")
        if output_variable:
            if "application/json" in resp.headers.get("content-type", ""):
                outputs[output_variable] = resp.json()
            else:
                outputs[output_variable] = resp.text
