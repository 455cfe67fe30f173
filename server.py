#!/usr/bin/env python3
"""
MCP Server entry point for the interpreter booking core.

Exposes booking intake, translator acceptance, cancellation, admin edits,
session completion, reopening, matching queries, notification resends and
the admin flag toggles as MCP tools.

Usage:
    python server.py

The server runs in stdio mode, the standard transport for MCP servers
invoked by agents or a controller process.
"""

import logging
from typing import Any, Dict

from mcp.server.fastmcp import FastMCP

from config import get_config
from tools.accept_job import accept_job, accept_job_by_id
from tools.admin_flags import ignore_expired, ignore_expiring, ignore_throttle
from tools.cancel_job import cancel_job
from tools.create_booking import create_booking
from tools.distance_feed import distance_feed
from tools.end_job import customer_not_call, end_job
from tools.get_eligible_jobs import get_eligible_jobs
from tools.get_job_data import get_job_data
from tools.notify_job_expired import notify_job_expired
from tools.notify_translators import notify_suitable_translators, send_sms_to_eligible_translators
from tools.reopen_job import reopen_job
from tools.store_job_email import store_job_email
from tools.update_job import update_job

# Create FastMCP server instance
config = get_config()
mcp = FastMCP(
    name=config.server_name,
    instructions=(
        "This server manages interpretation bookings between customers and translators. "
        "\n\n"
        "INTAKE:\n"
        "Use create_booking to create a pending job for a customer, then store_job_email to "
        "attach contact details and send the booking confirmation. "
        "\n\n"
        "LIFECYCLE:\n"
        "Use accept_job or accept_job_by_id when a translator claims a pending job (first claim wins). "
        "Use cancel_job for customer withdrawals and translator hand-backs. "
        "Use update_job for admin edits (reassignment, due, language, status). "
        "Use end_job and customer_not_call to close sessions, and reopen_job to put a job back on the market. "
        "\n\n"
        "MATCHING AND NOTIFICATIONS:\n"
        "Use get_eligible_jobs to list jobs a translator may accept. "
        "Use notify_suitable_translators and send_sms_to_eligible_translators to resend notifications. "
        "Use notify_job_expired to tell a customer that nobody accepted their booking."
    ),
)


def _compact(**kwargs: Any) -> Dict[str, Any]:
    """Build tool args, leaving out parameters that were not provided."""
    return {key: value for key, value in kwargs.items() if value is not None}


@mcp.tool(
    name="create_booking",
    description=(
        "Create an interpretation booking for a customer. Immediate bookings are due in a few "
        "minutes; scheduled bookings need due_date (MM/DD/YYYY), due_time (HH:MM), duration and a "
        "phone or on-site choice. Returns the job id or a VALIDATION_ERROR naming the field."
    ),
)
def create_booking_tool(
    customer_id: int,
    from_language_id: int | None = None,
    immediate: str | None = None,
    due_date: str | None = None,
    due_time: str | None = None,
    duration: int | None = None,
    customer_phone_type: str | None = None,
    customer_physical_type: str | None = None,
    job_for: list[str] | None = None,
    by_admin: str | None = None,
    town: str | None = None,
    address: str | None = None,
    instructions: str | None = None,
    reference: str | None = None,
    db_path: str | None = None,
) -> dict:
    """
    Create a booking.

    Args:
        customer_id: Requesting customer.
        from_language_id: Language to interpret.
        immediate: "yes" for an emergency booking, "no" (default) for scheduled.
        due_date: MM/DD/YYYY, scheduled bookings only.
        due_time: HH:MM, scheduled bookings only.
        duration: Booking length in minutes.
        customer_phone_type: Any non-empty value selects phone interpretation.
        customer_physical_type: Any non-empty value selects on-site interpretation.
        job_for: Selections among male, female, normal, certified,
            certified_in_law, certified_in_helth.
        db_path: Optional SQLite path override.

    Returns:
        {"status": "success", "id", "type", "customer_physical_type", "job_for"}
    """
    return create_booking(
        _compact(
            customer_id=customer_id,
            from_language_id=from_language_id,
            immediate=immediate,
            due_date=due_date,
            due_time=due_time,
            duration=duration,
            customer_phone_type=customer_phone_type,
            customer_physical_type=customer_physical_type,
            job_for=job_for,
            by_admin=by_admin,
            town=town,
            address=address,
            instructions=instructions,
            reference=reference,
            db_path=db_path,
        )
    )


@mcp.tool(
    name="store_job_email",
    description=(
        "Attach contact email, reference and address details to a new booking, send the booking "
        "confirmation email and publish the job-created event."
    ),
)
def store_job_email_tool(
    job_id: int,
    user_email: str | None = None,
    reference: str | None = None,
    address: str | None = None,
    instructions: str | None = None,
    town: str | None = None,
    user_type: str | None = None,
    db_path: str | None = None,
) -> dict:
    return store_job_email(
        _compact(
            job_id=job_id,
            user_email=user_email,
            reference=reference,
            address=address,
            instructions=instructions,
            town=town,
            user_type=user_type,
            db_path=db_path,
        )
    )


@mcp.tool(
    name="accept_job",
    description=(
        "Accept a pending job for a translator. Exactly one of several racing translators wins; "
        "the others receive a CONFLICT error. Returns the job and the translator's remaining "
        "eligible jobs."
    ),
)
def accept_job_tool(job_id: int, translator_id: int, db_path: str | None = None) -> dict:
    return accept_job(_compact(job_id=job_id, translator_id=translator_id, db_path=db_path))


@mcp.tool(
    name="accept_job_by_id",
    description="Accept a pending job by id and return a message for the translator.",
)
def accept_job_by_id_tool(job_id: int, translator_id: int, db_path: str | None = None) -> dict:
    return accept_job_by_id(
        _compact(job_id=job_id, translator_id=translator_id, db_path=db_path)
    )


@mcp.tool(
    name="cancel_job",
    description=(
        "Cancel a booking. Customers withdraw (withdrawbefore24 / withdrawafter24 depending on "
        "notice); the assigned translator may hand a booking back more than 24 hours ahead."
    ),
)
def cancel_job_tool(job_id: int, actor_id: int, db_path: str | None = None) -> dict:
    return cancel_job(_compact(job_id=job_id, actor_id=actor_id, db_path=db_path))


@mcp.tool(
    name="update_job",
    description=(
        "Admin edit of a booking: reassign translator, change due time or language, request a "
        "status change, set admin comment and reference. Status changes that the lifecycle "
        "does not allow are left out of the returned changes rather than reported as errors."
    ),
)
def update_job_tool(
    job_id: int,
    actor_id: int,
    status: str | None = None,
    due: str | None = None,
    from_language_id: int | None = None,
    translator_id: int | None = None,
    translator_email: str | None = None,
    admin_comments: str | None = None,
    reference: str | None = None,
    session_time: str | None = None,
    db_path: str | None = None,
) -> dict:
    """
    Update a booking as an admin.

    Args:
        job_id: Booking to edit.
        actor_id: Admin making the change.
        status: Requested status.
        due: New due time, YYYY-MM-DD HH:MM:SS.
        from_language_id: New language id.
        translator_id: Translator to assign.
        translator_email: Translator to assign, by email (wins over translator_id).
        admin_comments: Admin comment; required for some transitions.
        reference: Customer reference.
        session_time: HH:MM:SS, required when completing a started job.
        db_path: Optional SQLite path override.

    Returns:
        {"status": "updated", "changes": [...]}
    """
    return update_job(
        _compact(
            job_id=job_id,
            actor_id=actor_id,
            status=status,
            due=due,
            from_language_id=from_language_id,
            translator_id=translator_id,
            translator_email=translator_email,
            admin_comments=admin_comments,
            reference=reference,
            session_time=session_time,
            db_path=db_path,
        )
    )


@mcp.tool(
    name="end_job",
    description="End a started session, record its length and notify both parties.",
)
def end_job_tool(job_id: int, actor_id: int, db_path: str | None = None) -> dict:
    return end_job(_compact(job_id=job_id, actor_id=actor_id, db_path=db_path))


@mcp.tool(
    name="customer_not_call",
    description="Mark a booking as not carried out because the customer never called.",
)
def customer_not_call_tool(job_id: int, db_path: str | None = None) -> dict:
    return customer_not_call(_compact(job_id=job_id, db_path=db_path))


@mcp.tool(
    name="reopen_job",
    description=(
        "Reopen a booking. Timed-out bookings are copied into a new pending booking; open ones "
        "are reset to pending. Suitable translators are notified."
    ),
)
def reopen_job_tool(job_id: int, translator_id: int, db_path: str | None = None) -> dict:
    return reopen_job(_compact(job_id=job_id, translator_id=translator_id, db_path=db_path))


@mcp.tool(
    name="get_eligible_jobs",
    description="List pending jobs a translator may accept, earliest due first.",
)
def get_eligible_jobs_tool(translator_id: int, db_path: str | None = None) -> dict:
    return get_eligible_jobs(_compact(translator_id=translator_id, db_path=db_path))


@mcp.tool(
    name="notify_suitable_translators",
    description="Resend the new-booking push notification to every eligible translator.",
)
def notify_suitable_translators_tool(job_id: int, db_path: str | None = None) -> dict:
    return notify_suitable_translators(_compact(job_id=job_id, db_path=db_path))


@mcp.tool(
    name="send_sms_to_eligible_translators",
    description="Text every eligible translator about a booking; returns the number sent.",
)
def send_sms_to_eligible_translators_tool(job_id: int, db_path: str | None = None) -> dict:
    return send_sms_to_eligible_translators(_compact(job_id=job_id, db_path=db_path))


@mcp.tool(
    name="notify_job_expired",
    description=(
        "Push the \"no translator accepted your booking\" notice to the customer of a pending "
        "or timed-out booking. Called by the expiry sweep."
    ),
)
def notify_job_expired_tool(job_id: int, db_path: str | None = None) -> dict:
    return notify_job_expired(_compact(job_id=job_id, db_path=db_path))


@mcp.tool(name="ignore_expiring", description="Hide a booking from the expiring alerts.")
def ignore_expiring_tool(job_id: int, db_path: str | None = None) -> dict:
    return ignore_expiring(_compact(job_id=job_id, db_path=db_path))


@mcp.tool(name="ignore_expired", description="Hide a booking from the expired alerts.")
def ignore_expired_tool(job_id: int, db_path: str | None = None) -> dict:
    return ignore_expired(_compact(job_id=job_id, db_path=db_path))


@mcp.tool(name="ignore_throttle", description="Mark a failed-login throttle record as ignored.")
def ignore_throttle_tool(throttle_id: int, db_path: str | None = None) -> dict:
    return ignore_throttle(_compact(throttle_id=throttle_id, db_path=db_path))


@mcp.tool(
    name="distance_feed",
    description=(
        "Record travel distance and time for a booking together with admin bookkeeping "
        "(comment, session time, flagged, manually handled, by admin). Flagging requires a comment."
    ),
)
def distance_feed_tool(
    job_id: int,
    distance: str | None = None,
    time: str | None = None,
    session_time: str | None = None,
    flagged: bool | str | None = None,
    manually_handled: bool | str | None = None,
    by_admin: bool | str | None = None,
    admincomment: str | None = None,
    db_path: str | None = None,
) -> dict:
    return distance_feed(
        _compact(
            job_id=job_id,
            distance=distance,
            time=time,
            session_time=session_time,
            flagged=flagged,
            manually_handled=manually_handled,
            by_admin=by_admin,
            admincomment=admincomment,
            db_path=db_path,
        )
    )


@mcp.tool(
    name="get_job_data",
    description="Return the notification view of a booking (due date/time split, job_for labels).",
)
def get_job_data_tool(job_id: int, db_path: str | None = None) -> dict:
    return get_job_data(_compact(job_id=job_id, db_path=db_path))


def main():
    """
    Main entry point for the MCP server.

    Runs the server in stdio mode.
    """
    config.setup_logging()

    logger = logging.getLogger(__name__)
    logger.info("Starting booking MCP server")
    logger.info(f"Server name: {config.server_name}")
    logger.info(f"Database path: {config.db_path}")

    for warning in config.validate():
        logger.warning(warning)

    logger.info("Server starting in stdio mode")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
