"""POST /v1/notifications/parse - Dry-run notification parsing"""

from fastapi import APIRouter, Depends

from savemate_engine.api.v1.schemas import ParseRequest, ParsedNotificationResponse
from savemate_engine.api.dependencies import get_pattern_table
from savemate_engine.domain.notification_parser import BankPatternTable, parse_notification
from savemate_engine.infrastructure.observability.metrics import record_parse

router = APIRouter()


@router.post("/notifications/parse", response_model=ParsedNotificationResponse)
def parse(
    request_body: ParseRequest,
    pattern_table: BankPatternTable = Depends(get_pattern_table),
):
    """
    Show what the parser extracts from a notification, without persisting.

    Failures are reported in the body (success=false), never as an error status.
    """
    parsed = parse_notification(request_body.text, request_body.bank_name, table=pattern_table)
    record_parse(parsed.success)
    return ParsedNotificationResponse.from_parsed(parsed)
