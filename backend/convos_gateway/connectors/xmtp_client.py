"""XMTP identity API connector (installation-authorization oracle).

Answers "is this installation key currently a member of this inbox?" by
fetching the inbox's identity-update log from an XMTP node and replaying
the membership changes it contains.

Protocol contract:
  POST {base_url}/identity/v1/get-identity-updates
  Body: {"requests": [{"inbox_id": "...", "sequence_id": 0}]}
  Response: {
    "responses": [{
      "inboxId": "...",
      "updates": [{
        "sequenceId": "1",
        "update": {"actions": [
          {"createInbox": {"initialIdentifier": "0x..."}},
          {"add": {
            "newMemberIdentifier": {"installationPublicKey": "<base64>"},
            "existingMemberSignature": {"erc191": {...}}
          }},
          {"revoke": {"memberToRevoke": {"ethereumAddress": "0x..."}}}
        ]}
      }]
    }]
  }

Field names are accepted in either camelCase or snake_case.

Revoking a member also removes the installations it added.  The adding
member is the signer of the add's ``existingMemberSignature``: explicit for
installation-key and smart-contract (ERC-6492) signatures, and for ERC-191
signatures narrowed to the addresses linked at that point.  When a revoke
leaves it unclear whether an installation survived, asking about that
installation raises :class:`XmtpApiError` rather than authorizing it.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import httpx

from convos_gateway.config import settings

logger = logging.getLogger("convos.connectors.xmtp")

GET_IDENTITY_UPDATES_PATH = "/identity/v1/get-identity-updates"

# Members are ("address", "0x...") or ("installation", <raw key>).
Member = tuple[str, Any]

# Stands in for an adding member that cannot be identified at all.
_UNKNOWN_SIGNER: Member = ("unknown", None)


class XmtpApiError(Exception):
    """The XMTP network could not be queried or returned an unusable payload."""


def _field(obj: Any, snake: str) -> Any:
    """Read a protobuf-JSON field under its snake_case or lowerCamelCase name."""
    if not isinstance(obj, dict):
        return None
    if snake in obj:
        return obj[snake]
    head, *rest = snake.split("_")
    camel = head + "".join(part.title() for part in rest)
    return obj.get(camel)


def _decode_key(raw: Any) -> bytes:
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, TypeError, ValueError) as exc:
        raise XmtpApiError(f"undecodable installation key in identity update: {exc}") from exc


def _member(identifier: Any) -> Member | None:
    """Identify a ``MemberIdentifier``; None for member kinds that are not tracked (passkeys)."""
    key = _field(identifier, "installation_public_key")
    if key is not None:
        return ("installation", _decode_key(key))
    address = _field(identifier, "ethereum_address")
    if isinstance(address, str) and address:
        return ("address", address.lower())
    return None


class InboxMembership:
    """Members of one inbox, rebuilt by replaying its identity updates in order."""

    def __init__(self) -> None:
        self.addresses: set[str] = set()
        # installation key -> members that may have added it
        self.installations: dict[bytes, frozenset[Member]] = {}
        # installations whose survival of a revoke cannot be decided
        self.undecided: set[bytes] = set()

    @property
    def installation_keys(self) -> set[bytes]:
        return set(self.installations) - self.undecided

    def is_authorized(self, installation_id: bytes) -> bool:
        if installation_id in self.undecided:
            raise XmtpApiError(
                f"cannot tell whether installation {installation_id.hex()} survived a member revocation"
            )
        return installation_id in self.installations

    def apply(self, action: dict[str, Any]) -> None:
        created = _field(action, "create_inbox")
        if created is not None:
            initial = _field(created, "initial_identifier") or _field(created, "initial_address")
            if isinstance(initial, str) and initial:
                self.addresses.add(initial.lower())
            return

        added = _field(action, "add")
        if added is not None:
            member = _member(_field(added, "new_member_identifier"))
            if member is None:
                return
            kind, value = member
            if kind == "address":
                self.addresses.add(value)
            else:
                self.installations[value] = self._signers(_field(added, "existing_member_signature"))
                self.undecided.discard(value)
            return

        revoked = _field(action, "revoke")
        if revoked is not None:
            member = _member(_field(revoked, "member_to_revoke"))
            if member is None:
                return
            kind, value = member
            if kind == "address":
                self.addresses.discard(value)
            else:
                self.installations.pop(value, None)
                self.undecided.discard(value)
            self._revoke_children(member)

    def _signers(self, signature: Any) -> frozenset[Member]:
        """Members that could have produced *signature*."""
        installation_sig = _field(signature, "installation_key")
        if installation_sig is not None:
            public_key = _field(installation_sig, "public_key")
            if public_key is not None:
                return frozenset({("installation", _decode_key(public_key))})

        contract_sig = _field(signature, "erc_6492")
        if contract_sig is not None:
            account_id = _field(contract_sig, "account_id")
            if isinstance(account_id, str) and account_id:
                # CAIP-10: eip155:<chain>:<address>
                return frozenset({("address", account_id.rsplit(":", 1)[-1].lower())})

        # ERC-191 signatures carry no signer; any linked address may have signed.
        candidates = frozenset(("address", address) for address in self.addresses)
        return candidates or frozenset({_UNKNOWN_SIGNER})

    def _revoke_children(self, parent: Member) -> None:
        # An unidentified signer is some address, never an installation.
        for key, signers in list(self.installations.items()):
            if parent in signers:
                remaining = signers - {parent}
            elif _UNKNOWN_SIGNER in signers and parent[0] == "address":
                remaining = signers
            else:
                continue
            if remaining:
                self.installations[key] = remaining
                self.undecided.add(key)
            else:
                del self.installations[key]
                self.undecided.discard(key)


def replay_identity_updates(updates: list[dict[str, Any]]) -> InboxMembership:
    """Replay identity updates in sequence order into an :class:`InboxMembership`."""

    def _sequence(entry: dict[str, Any]) -> int:
        try:
            return int(_field(entry, "sequence_id") or 0)
        except (TypeError, ValueError):
            return 0

    membership = InboxMembership()
    for entry in sorted(updates, key=_sequence):
        update = _field(entry, "update") or {}
        for action in _field(update, "actions") or []:
            membership.apply(action)
    return membership


class XmtpIdentityClient:
    """
    Queries an XMTP node's identity API over HTTP.

    One instance is created per process and shared across requests; the
    underlying ``httpx.AsyncClient`` holds no per-request state.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.xmtp_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.XMTP_API_TIMEOUT_SECONDS
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )

    async def get_identity_updates(self, inbox_id: str) -> list[dict[str, Any]]:
        """Fetch the full identity-update log for *inbox_id*."""
        payload = {"requests": [{"inbox_id": inbox_id, "sequence_id": 0}]}
        try:
            response = await self._client.post(GET_IDENTITY_UPDATES_PATH, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise XmtpApiError(
                f"XMTP identity API returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise XmtpApiError(f"XMTP identity API request failed: {exc}") from exc
        except ValueError as exc:
            raise XmtpApiError(f"XMTP identity API returned invalid JSON: {exc}") from exc

        responses = _field(data, "responses")
        if not isinstance(responses, list):
            raise XmtpApiError("XMTP identity API response has no 'responses' list")
        for entry in responses:
            if _field(entry, "inbox_id") in (None, inbox_id):
                return list(_field(entry, "updates") or [])
        return []

    async def is_installation_authorized(self, inbox_id: str, installation_id: bytes) -> bool:
        """Return True if *installation_id* is a current, unrevoked installation of *inbox_id*.

        Raises :class:`XmtpApiError` when a member revocation makes the
        answer undecidable from the update log.
        """
        updates = await self.get_identity_updates(inbox_id)
        membership = replay_identity_updates(updates)
        authorized = membership.is_authorized(installation_id)
        logger.debug(
            "Inbox %s has %d live installation(s); %s authorized=%s",
            inbox_id, len(membership.installation_keys), installation_id.hex(), authorized,
        )
        return authorized

    async def aclose(self) -> None:
        await self._client.aclose()
