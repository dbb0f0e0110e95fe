"""Policy Templates: synthesize gateway policy documents from row limits.

Manifesto:
    Operators describe limits abstractly ("100 calls per hour, 5 per
    second"); the gateway wants a policy document.  ``build_policy`` is the
    single translation point, so every operation of every API gets the same
    shape of document and the whole document is recomputed on every pass.
    Uploading it replaces whatever policy the operation had before.

ARCHITECTURE
────────────
::

    RowConfig ──► build_policy() ──► PolicyDocument ──► to_xml()
                                       inbound:
                                         <base />                  always
                                         <rewrite-uri .../>        always (default "/")
                                         <quota-by-key .../>       ceiling > 0 and window >= 300s
                                         <rate-limit-by-key .../>  qps > 0, renewal-period="1"
                                       backend:  <base />
                                       outbound: <base />

QUOTA GATING
────────────
The quota window is the period converted with ``minute=60, hour=3600,
day=86400``.  Windows shorter than 300 seconds are not emitted: the gateway
rejects or ignores sub-5-minute quota windows.  A blank or unrecognised
period maps to 0 seconds and therefore produces no quota clause at all.
That is a silent skip, not an error; it is logged as ``policy.quota_skipped``
so operators can spot rows that asked for a quota and did not get one.

Tags:
    gateway-spine, policy, templates, quota, rate-limit

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from xml.sax.saxutils import escape

from gateway_spine.core.logging import get_logger
from gateway_spine.core.models import RowConfig

logger = get_logger(__name__)

# Below this window the gateway does not enforce quotas.
MIN_QUOTA_WINDOW_SECONDS = 300
RATE_LIMIT_RENEWAL_SECONDS = 1
DEFAULT_REWRITE_TARGET = "/"
# Subscription when the caller presented a key, otherwise the client address.
COUNTER_KEY = "@(context.Subscription?.Id ?? context.Request.IpAddress)"
WILDCARD_PARAMETER = "path"


def _attr(value: object) -> str:
    return escape(str(value), {'"': "&quot;"})


@dataclass(frozen=True)
class PolicyClause:
    """One element of the inbound section."""

    tag: str
    attributes: tuple[tuple[str, str], ...] = ()

    def render(self) -> str:
        attrs = "".join(f' {name}="{_attr(value)}"' for name, value in self.attributes)
        return f"<{self.tag}{attrs} />"

    def get(self, name: str) -> str | None:
        for key, value in self.attributes:
            if key == name:
                return value
        return None


def base_clause() -> PolicyClause:
    return PolicyClause("base")


def rewrite_clause(template: str) -> PolicyClause:
    return PolicyClause("rewrite-uri", (("template", template),))


def set_variable_clause(name: str, value: str) -> PolicyClause:
    return PolicyClause("set-variable", (("name", name), ("value", value)))


def quota_clause(calls: int, renewal_period: int) -> PolicyClause:
    return PolicyClause(
        "quota-by-key",
        (("calls", str(calls)), ("renewal-period", str(renewal_period)), ("counter-key", COUNTER_KEY)),
    )


def rate_limit_clause(calls: int) -> PolicyClause:
    return PolicyClause(
        "rate-limit-by-key",
        (
            ("calls", str(calls)),
            ("renewal-period", str(RATE_LIMIT_RENEWAL_SECONDS)),
            ("counter-key", COUNTER_KEY),
        ),
    )


@dataclass(frozen=True)
class PolicyDocument:
    """
    Generated policy for one ``(api_id, operation_id)``.

    Backend and outbound sections are fixed passthroughs; only the inbound
    clauses vary.
    """

    inbound: tuple[PolicyClause, ...]
    api_id: str | None = None
    operation_id: str | None = None
    backend: tuple[PolicyClause, ...] = field(default=(PolicyClause("base"),))
    outbound: tuple[PolicyClause, ...] = field(default=(PolicyClause("base"),))

    def clause(self, tag: str) -> PolicyClause | None:
        """First inbound clause with ``tag``, or None."""
        for item in self.inbound:
            if item.tag == tag:
                return item
        return None

    def has_clause(self, tag: str) -> bool:
        return self.clause(tag) is not None

    @property
    def tags(self) -> list[str]:
        return [item.tag for item in self.inbound]

    def to_xml(self) -> str:
        def section(name: str, clauses: tuple[PolicyClause, ...]) -> str:
            body = "".join(f"    {item.render()}\n" for item in clauses)
            return f"  <{name}>\n{body}  </{name}>\n"

        return (
            "<policies>\n"
            + section("inbound", self.inbound)
            + section("backend", self.backend)
            + section("outbound", self.outbound)
            + "</policies>"
        )


def quota_window_seconds(config: RowConfig) -> int:
    """Quota window for the row, 0 when the period is blank or unknown."""
    return config.rate_limit.period_seconds


def build_policy(
    config: RowConfig,
    *,
    api_id: str | None = None,
    operation_id: str | None = None,
    wildcard: bool = False,
) -> PolicyDocument:
    """
    Build the full policy document for one operation of ``config``.

    With ``wildcard`` the rewrite keeps the tail matched by the operation's
    ``{*path}`` segment: the target becomes a base that the matched path is
    appended to.
    """
    inbound: list[PolicyClause] = [base_clause()]

    target = config.outbound_rewrite_target or DEFAULT_REWRITE_TARGET
    if wildcard:
        rewrite_base = target.rstrip("/")
        inbound.append(set_variable_clause("rewriteBase", rewrite_base))
        inbound.append(
            rewrite_clause(
                '@((string)context.Variables["rewriteBase"] + '
                f'context.Request.MatchedParameters["{WILDCARD_PARAMETER}"])'
            )
        )
    else:
        inbound.append(rewrite_clause(target))

    ceiling = config.rate_limit.ceiling
    window = quota_window_seconds(config)
    if ceiling > 0 and window >= MIN_QUOTA_WINDOW_SECONDS:
        inbound.append(quota_clause(ceiling, window))
    elif ceiling > 0:
        logger.info(
            "policy.quota_skipped",
            api_id=api_id,
            operation_id=operation_id,
            ceiling=ceiling,
            period=config.rate_limit.period.value or None,
            window_seconds=window,
        )

    if config.qps_limit > 0:
        inbound.append(rate_limit_clause(config.qps_limit))

    return PolicyDocument(inbound=tuple(inbound), api_id=api_id, operation_id=operation_id)


__all__ = [
    "MIN_QUOTA_WINDOW_SECONDS",
    "RATE_LIMIT_RENEWAL_SECONDS",
    "DEFAULT_REWRITE_TARGET",
    "COUNTER_KEY",
    "PolicyClause",
    "PolicyDocument",
    "build_policy",
    "quota_window_seconds",
]
