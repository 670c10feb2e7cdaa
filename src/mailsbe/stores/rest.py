"""PostgREST (Supabase) tracking store."""

from datetime import datetime
from typing import Dict, List, Optional

import requests

from ..config import ServiceCredential
from ..exceptions import DuplicateTokenError, StoreError
from ..models import ChangeKind, EmailId, TrackedEmail, hosted_row, parse_timestamp
from .http import HTTPTrackingStore

RETURN_ROWS = {"Prefer": "return=representation"}


class RESTTrackingStore(HTTPTrackingStore):
    """Talks to a PostgREST endpoint such as ``https://<project>.supabase.co/rest/v1``.

    Rows use the hosted column names: ``email``, ``description``,
    ``img_text``, ``seen``, ``seen_at``, ``user_id``, ``created_at``.
    """

    def _auth_headers(self, credential: ServiceCredential) -> Dict[str, str]:
        secret = credential.reveal()
        return {
            "apikey": secret,
            "Authorization": f"Bearer {secret}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @property
    def table_url(self) -> str:
        return f"{self.base_url}/{self.table}"

    def _raise_for_status(self, response: requests.Response) -> None:
        # 23505 is Postgres' unique_violation
        if response.status_code == 409 or '"23505"' in response.text:
            raise DuplicateTokenError(
                "Tracking token already exists", context={"status": response.status_code}
            )
        super()._raise_for_status(response)

    def _rows(self, method: str, params: Dict[str, str], **kwargs) -> List[TrackedEmail]:
        body = self._request(method, self.table_url, params=params, **kwargs)
        if body is None:
            return []
        if not isinstance(body, list):
            raise StoreError("Expected a list of rows from the backend", context={"body": str(body)[:200]})
        return [TrackedEmail.from_row(row) for row in body]

    def find_by_token(self, token: str) -> Optional[TrackedEmail]:
        rows = self._rows("GET", {"select": "*", "img_text": f"eq.{token}", "limit": "1"})
        return rows[0] if rows else None

    def mark_seen(self, token: str, seen_at: datetime) -> Optional[TrackedEmail]:
        # The seen=is.false filter makes the write conditional; only the call
        # that flips the row gets it back.
        rows = self._rows(
            "PATCH",
            {"img_text": f"eq.{token}", "seen": "is.false"},
            json={"seen": True, "seen_at": parse_timestamp(seen_at).isoformat()},
            headers=RETURN_ROWS,
        )
        if not rows:
            return None
        self._publish(ChangeKind.UPDATE, rows[0])
        return rows[0]

    def create(
        self,
        owner: str,
        recipient_address: str,
        description: str,
        tracking_token: str,
    ) -> TrackedEmail:
        rows = self._rows(
            "POST",
            {},
            json=hosted_row(
                owner=owner,
                recipient_address=recipient_address,
                description=description,
                tracking_token=tracking_token,
                seen=False,
            ),
            headers=RETURN_ROWS,
        )
        if not rows:
            raise StoreError("Backend did not return the created row")
        self._publish(ChangeKind.INSERT, rows[0])
        return rows[0]

    def list_for_owner(self, owner: str) -> List[TrackedEmail]:
        return self._rows(
            "GET",
            {"select": "*", "user_id": f"eq.{owner}", "order": "created_at.desc,id.desc"},
        )

    def get(self, email_id: EmailId, owner: str) -> Optional[TrackedEmail]:
        rows = self._rows(
            "GET",
            {"select": "*", "id": f"eq.{email_id}", "user_id": f"eq.{owner}", "limit": "1"},
        )
        return rows[0] if rows else None

    def delete(self, email_id: EmailId, owner: str) -> bool:
        rows = self._rows(
            "DELETE",
            {"id": f"eq.{email_id}", "user_id": f"eq.{owner}"},
            headers=RETURN_ROWS,
        )
        for row in rows:
            self._publish(ChangeKind.DELETE, row)
        return bool(rows)
