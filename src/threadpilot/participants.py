"""Summary: Cross-links Slack users with Basecamp people.

Importance: Subscribes thread participants and mentions the reporter in the created to-do.
Alternatives: Leave the reporter as plain text and skip subscriptions.
"""

from __future__ import annotations

import html
import logging
import re

from slack_sdk.errors import SlackClientError

from threadpilot.basecamp import BasecampClient
from threadpilot.models import BasecampPerson
from threadpilot.slack import SlackGateway


logger = logging.getLogger(__name__)

REPORTED_BY_PATTERN = re.compile(r"Reported by (.+?) in Slack")


class ParticipantResolver:
    """Summary: Matches Slack users to Basecamp people by email address.

    Importance: The Basecamp people list is fetched once per account and reused.
    Alternatives: Maintain a manual Slack-to-Basecamp mapping table.
    """

    def __init__(self, slack: SlackGateway, basecamp: BasecampClient) -> None:
        self._slack = slack
        self._basecamp = basecamp
        self._people_cache: dict[str, list[BasecampPerson]] = {}

    def people(self) -> list[BasecampPerson]:
        account_id = self._basecamp.account_id
        if account_id not in self._people_cache:
            self._people_cache[account_id] = self._basecamp.list_people()
        return self._people_cache[account_id]

    def resolve_person_ids(self, slack_user_ids: list[str]) -> list[int]:
        """Summary: Map Slack user ids to unique Basecamp person ids.

        Importance: Users without a visible email or Basecamp account are skipped silently.
        Alternatives: Fail the run when any participant cannot be mapped.
        """

        if not slack_user_ids:
            return []
        by_email = {person.email: person.id for person in self.people() if person.email}
        person_ids: list[int] = []
        for slack_user_id in slack_user_ids:
            try:
                email = self._slack.get_user(slack_user_id).email
            except SlackClientError as exc:
                logger.info("Skipping Slack user %s: %s", slack_user_id, exc)
                continue
            person_id = by_email.get(email) if email else None
            if person_id is not None and person_id not in person_ids:
                person_ids.append(person_id)
        return person_ids

    def resolve_reporter(self, slack_user_id: str) -> BasecampPerson | None:
        person_ids = self.resolve_person_ids([slack_user_id])
        if not person_ids:
            return None
        for person in self.people():
            if person.id == person_ids[0] and person.attachable_sgid:
                return person
        return None


def link_reporter(
    description: str, reporter: BasecampPerson | None, permalink: str | None
) -> str:
    """Summary: Turn the "Reported by X in Slack" line into rich text.

    Importance: Mentions the reporter in Basecamp and links back to the Slack message.
    Alternatives: Append raw links at the end of the description.
    """

    if reporter and reporter.attachable_sgid:
        mention = (
            f'<bc-mention sgid="{html.escape(reporter.attachable_sgid)}">'
            f"{html.escape(reporter.name)}</bc-mention>"
        )
        description = REPORTED_BY_PATTERN.sub(
            lambda _match: f"Reported by {mention} in Slack", description, count=1
        )
    if permalink and " in Slack" in description:
        description = description.replace(
            " in Slack", f' in <a href="{html.escape(permalink)}">Slack</a>', 1
        )
    return description
