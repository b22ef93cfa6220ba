"""AI-suggested priorities based on the previous two weeks."""
import json
import logging
from datetime import date, timedelta

import anthropic
from pydantic import ValidationError

import clock
import config
import database
from models import DayRecord, RecommendedPriority
from prompts import RECOMMENDATION_PROMPT

logger = logging.getLogger(__name__)

HISTORY_DAYS = 14

API_KEY_CONFIGURED = bool(config.ANTHROPIC_API_KEY) and config.ANTHROPIC_API_KEY != "your-api-key-here"
client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY) if API_KEY_CONFIGURED else None


def build_history_context(days: list[DayRecord], target_date: date) -> str:
    """Plain-text summary of past priorities for the model."""
    lines = ["Historical Priority Data:", ""]
    for day in days:
        lines.append(f"Date: {day.date.isoformat()} ({day.date.strftime('%A')})")
        if day.priorities:
            for priority in sorted(day.priorities, key=lambda p: p.rank):
                status = "Completed" if priority.done else "Not completed"
                recurring = " (Recurring)" if priority.template_id is not None else ""
                lines.append(f"  Priority #{priority.rank}: {priority.name} - {status}{recurring}")
        else:
            lines.append("  No priorities recorded")
        lines.append("")
    lines.append(f"Target Date: {target_date.isoformat()} ({target_date.strftime('%A')})")
    return "\n".join(lines)


def parse_recommendations(text: str) -> list[RecommendedPriority]:
    """Parse the model's JSON array; malformed items are skipped."""
    text = text.strip()
    # Strip markdown code block if present
    if text.startswith("```"):
        lines = text.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)

    try:
        items = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Could not parse recommendation response: %s", text[:200])
        return []
    if not isinstance(items, list):
        return []

    recommendations = []
    for item in items:
        try:
            recommendations.append(RecommendedPriority.model_validate(item))
        except ValidationError:
            logger.debug("Skipping malformed recommendation: %s", item)
    return recommendations[:3]


async def get_recommendations(target_date: date) -> list[RecommendedPriority]:
    """Up to three suggested priorities for target_date; empty when unavailable."""
    if client is None:
        logger.warning("Cannot generate recommendations: ANTHROPIC_API_KEY not configured")
        return []

    history = database.list_days_db(target_date - timedelta(days=HISTORY_DAYS), target_date - timedelta(days=1))
    if not any(day.priorities for day in history):
        logger.info("No historical data available for recommendations")
        return []

    try:
        response = await client.messages.create(
            model=config.RECOMMENDATION_MODEL,
            max_tokens=config.RECOMMENDATION_MAX_TOKENS,
            system=RECOMMENDATION_PROMPT.format(today=clock.today_in(config.APP_TIMEZONE).isoformat()),
            messages=[{"role": "user", "content": build_history_context(history, target_date)}],
        )
    except anthropic.APIError:
        logger.error("Error generating priority recommendations for %s", target_date, exc_info=True)
        return []

    recommendations = parse_recommendations(response.content[0].text)
    logger.info("Generated %d recommendations for %s", len(recommendations), target_date)
    return recommendations
