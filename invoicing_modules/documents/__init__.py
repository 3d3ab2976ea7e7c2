"""
Documents Module (``invoicing_modules.documents``).

Line items, client snapshots and the normalizer that turns raw invoice and
quote payloads into canonical, financially consistent documents.
"""
