"""
Human-readable document numbers

Numbers are derived from the row id after flush, so they are unique as long as
the id is: REQ-20250114-00042.
"""

from datetime import datetime

REQUEST_PREFIX = 'REQ'
CLIENT_ORDER_PREFIX = 'CO'
SUPPLIER_ORDER_PREFIX = 'PO'


def document_number(prefix, record_id, when=None):
    when = when or datetime.utcnow()
    return f"{prefix}-{when:%Y%m%d}-{record_id:05d}"
