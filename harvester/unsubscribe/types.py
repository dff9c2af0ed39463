"""
Type-safe dataclasses for vendor responses and unsubscribe results.
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional


@dataclass(frozen=True)
class ConfirmationResponse:
    """Vendor success payload."""

    form_id: str = ''
    follow_up_url: str = ''
    delivery_type: str = ''
    follow_up_stream_value: str = ''
    ali_id: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConfirmationResponse':
        """Create from the vendor's camelCase JSON."""
        def text(key: str) -> str:
            value = data.get(key)
            return '' if value is None else str(value)

        return cls(
            form_id=text('formId'),
            follow_up_url=text('followUpUrl'),
            delivery_type=text('deliveryType'),
            follow_up_stream_value=text('followUpStreamValue'),
            ali_id=text('aliId'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'formId': self.form_id,
            'followUpUrl': self.follow_up_url,
            'deliveryType': self.delivery_type,
            'followUpStreamValue': self.follow_up_stream_value,
            'aliId': self.ali_id,
        }


# UnsubscribeResult reasons
REASON_UNSUBSCRIBED = 'unsubscribed'
REASON_ALREADY_PROCESSED = 'already processed'
REASON_DRY_RUN = 'dry run'
REASON_IN_FLIGHT = 'in flight elsewhere'


@dataclass(frozen=True)
class UnsubscribeResult:
    """Outcome of try_unsubscribe for one email."""

    email: str
    submitted: bool
    reason: str = ''
    confirmation: Optional[ConfirmationResponse] = None

    @property
    def summary(self) -> str:
        if self.submitted:
            return f"{self.email}: unsubscribed"
        return f"{self.email}: not submitted ({self.reason})"
