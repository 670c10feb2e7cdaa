"""Hasura (Nhost) GraphQL tracking store."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config import ServiceCredential
from ..exceptions import DuplicateTokenError, StoreError
from ..models import ChangeKind, EmailId, TrackedEmail, hosted_row, parse_timestamp
from .http import HTTPTrackingStore

FIELDS = "id user_id email description img_text seen seen_at created_at"


class GraphQLTrackingStore(HTTPTrackingStore):
    """Talks to a Hasura GraphQL endpoint (``.../v1/graphql``) with the admin secret."""

    #: GraphQL type of the ``user_id`` column
    owner_type = "uuid"

    def __init__(self, *args, id_type: str = "Int", **kwargs):
        """Initialize the store.

        Args:
            id_type: GraphQL type of the ``id`` column (``Int`` or ``uuid``)

        Other arguments are those of HTTPTrackingStore.
        """
        super().__init__(*args, **kwargs)
        self.id_type = id_type

    def _auth_headers(self, credential: ServiceCredential) -> Dict[str, str]:
        return {
            "x-hasura-admin-secret": credential.reveal(),
            "Content-Type": "application/json",
        }

    def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        body = self._request("POST", self.base_url, json={"query": query, "variables": variables})
        if not isinstance(body, dict):
            raise StoreError("Backend returned an empty GraphQL response")
        errors = body.get("errors")
        if errors:
            codes = {(e.get("extensions") or {}).get("code") for e in errors}
            message = "; ".join(str(e.get("message")) for e in errors)
            if "constraint-violation" in codes or "Uniqueness violation" in message:
                raise DuplicateTokenError("Tracking token already exists", context={"errors": message})
            raise StoreError(f"GraphQL error: {message}", context={"codes": sorted(c for c in codes if c)})
        data = body.get("data")
        if not isinstance(data, dict):
            raise StoreError("GraphQL response carried no data")
        return data

    def find_by_token(self, token: str) -> Optional[TrackedEmail]:
        query = f"""
            query FindEmail($text: String!) {{
              {self.table}(where: {{img_text: {{_eq: $text}}}}, limit: 1) {{ {FIELDS} }}
            }}
        """
        rows = self._execute(query, {"text": token})[self.table]
        return TrackedEmail.from_row(rows[0]) if rows else None

    def mark_seen(self, token: str, seen_at: datetime) -> Optional[TrackedEmail]:
        query = f"""
            mutation MarkSeen($text: String!, $seenAt: timestamptz!) {{
              update_{self.table}(
                where: {{img_text: {{_eq: $text}}, seen: {{_eq: false}}}},
                _set: {{seen: true, seen_at: $seenAt}}
              ) {{ affected_rows returning {{ {FIELDS} }} }}
            }}
        """
        result = self._execute(
            query, {"text": token, "seenAt": parse_timestamp(seen_at).isoformat()}
        )[f"update_{self.table}"]
        if not result or not result.get("affected_rows"):
            return None
        record = TrackedEmail.from_row(result["returning"][0])
        self._publish(ChangeKind.UPDATE, record)
        return record

    def create(
        self,
        owner: str,
        recipient_address: str,
        description: str,
        tracking_token: str,
    ) -> TrackedEmail:
        query = f"""
            mutation CreateEmail($object: {self.table}_insert_input!) {{
              insert_{self.table}_one(object: $object) {{ {FIELDS} }}
            }}
        """
        row = self._execute(query, {"object": hosted_row(
            owner=owner,
            recipient_address=recipient_address,
            description=description,
            tracking_token=tracking_token,
            seen=False,
        )})[f"insert_{self.table}_one"]
        if not row:
            raise StoreError("Backend did not return the created row")
        record = TrackedEmail.from_row(row)
        self._publish(ChangeKind.INSERT, record)
        return record

    def list_for_owner(self, owner: str) -> List[TrackedEmail]:
        query = f"""
            query ListEmails($owner: {self.owner_type}!) {{
              {self.table}(
                where: {{user_id: {{_eq: $owner}}}},
                order_by: [{{created_at: desc}}, {{id: desc}}]
              ) {{ {FIELDS} }}
            }}
        """
        rows = self._execute(query, {"owner": owner})[self.table]
        return [TrackedEmail.from_row(row) for row in rows]

    def get(self, email_id: EmailId, owner: str) -> Optional[TrackedEmail]:
        query = f"""
            query GetEmail($id: {self.id_type}!, $owner: {self.owner_type}!) {{
              {self.table}(where: {{id: {{_eq: $id}}, user_id: {{_eq: $owner}}}}, limit: 1) {{ {FIELDS} }}
            }}
        """
        rows = self._execute(query, {"id": email_id, "owner": owner})[self.table]
        return TrackedEmail.from_row(rows[0]) if rows else None

    def delete(self, email_id: EmailId, owner: str) -> bool:
        query = f"""
            mutation DeleteEmail($id: {self.id_type}!, $owner: {self.owner_type}!) {{
              delete_{self.table}(where: {{id: {{_eq: $id}}, user_id: {{_eq: $owner}}}}) {{
                affected_rows returning {{ {FIELDS} }}
              }}
            }}
        """
        result = self._execute(query, {"id": email_id, "owner": owner})[f"delete_{self.table}"]
        rows = (result or {}).get("returning") or []
        for row in rows:
            self._publish(ChangeKind.DELETE, TrackedEmail.from_row(row))
        return bool(rows)
