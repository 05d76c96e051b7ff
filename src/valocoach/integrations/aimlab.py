"""
Aim Lab GraphQL integration.

Two read-only queries against the public Aim Lab endpoint: a player's
profile (skill rating and per-category skill scores) and their per-task
play aggregates. No authentication is required.
"""

import logging
from typing import Any

import requests

from valocoach.core.errors import AimlabAPIError

logger = logging.getLogger(__name__)

AIMLAB_API_ENDPOINT = "https://api.aimlab.gg/graphql"

GET_USER_INFO = """
query GetProfile($username: String) {
  aimlabProfile(username: $username) {
    username
    user {
      id
    }
    ranking {
      rank {
        displayName
        tier
        level
        minSkill
        maxSkill
      }
      skill
    }
    skillScores {
      name
      score
    }
  }
}
"""

GET_USER_PLAYS_AGG = """
query GetAimlabProfileAgg($where: AimlabPlayWhere!) {
  aimlab {
    plays_agg(where: $where) {
      group_by {
        task_id
        task_name
      }
      aggregate {
        count
        avg {
          score
          accuracy
        }
        max {
          score
          accuracy
          created_at
        }
      }
    }
  }
}
"""


def plays_filter(user_id: str) -> dict[str, Any]:
    """Ranked (non-practice) plays with a positive score for one user."""
    return {
        "is_practice": {"_eq": False},
        "score": {"_gt": 0},
        "user_id": {"_eq": user_id},
    }


class AimlabClient:
    """Client for the Aim Lab GraphQL API."""

    def __init__(
        self,
        endpoint: str = AIMLAB_API_ENDPOINT,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Content-Type": "application/json"})
        return self._session

    def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST one GraphQL operation and return its ``data`` object."""
        response = self._get_session().post(
            self.endpoint,
            json={"query": query, "variables": variables},
            timeout=self.timeout,
        )
        if not response.ok:
            raise AimlabAPIError(
                f"Aim Lab request failed with status {response.status_code}: {response.text}"
            )

        payload = response.json()
        if payload.get("errors"):
            raise AimlabAPIError(f"Aim Lab returned errors: {payload['errors']}")
        return payload.get("data") or {}

    def get_profile(self, username: str) -> dict[str, Any]:
        """
        Fetch a player's Aim Lab profile.

        Returns:
            {"aimlabProfile": {...}}; aimlabProfile is None for unknown users
        """
        logger.debug("Fetching Aim Lab profile for %s", username)
        return self._execute(GET_USER_INFO, {"username": username})

    def get_plays_aggregate(self, user_id: str) -> dict[str, Any]:
        """
        Fetch per-task aggregates (play count, average and best score/accuracy).

        Args:
            user_id: Aim Lab user id, found at aimlabProfile.user.id

        Returns:
            {"aimlab": {"plays_agg": [...]}}
        """
        logger.debug("Fetching Aim Lab play aggregates for user %s", user_id)
        return self._execute(GET_USER_PLAYS_AGG, {"where": plays_filter(user_id)})
