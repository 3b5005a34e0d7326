"""Configuration constants for report layout and delivery."""

from reportlab.lib.pagesizes import A4

# Page geometry (points)
PAGE_SIZE = A4
PAGE_MARGIN = 40
BOTTOM_MARGIN = 50

# Typography
FONT_REGULAR = 'Helvetica'
FONT_BOLD = 'Helvetica-Bold'
TITLE_FONT_SIZE = 18
SUBTITLE_FONT_SIZE = 12
HEADING_FONT_SIZE = 11
BODY_FONT_SIZE = 9
LINE_SPACING = 1.25  # leading = font size * spacing

# Tables
MIN_TABLE_ROWS = 3
ONEPM_PART_LIMIT = 3
CELL_PADDING = 4
PART_COLUMNS = ['Sr No', 'Part Code', 'Part Description', 'Serial Number', 'Qty']
PART_COLUMN_RATIOS = [0.08, 0.17, 0.45, 0.20, 0.10]

# Blocks
LOGO_SIZE = (100, 40)
SIGNATURE_BOX_HEIGHT = 80
FOOTER_HEIGHT = 48
FOOTER_FILL = '#d8d8d8'
HEADER_FILL = '#e6e6e6'

# Placeholder for missing scalar fields
MISSING_VALUE = 'N/A'

FOOTER_LINES = [
    'For Queries, please contact our Customer Care Centre',
    'Toll Free: 1800 209 6070  Email: Customer.Care@vertiv.com',
    'Vertiv Energy Private Limited',
]
FOOTER_DOCUMENT_NO = 'ISO No: QS-FM-SER-1-04-01'

# Delivery
RETRY_DELAY_SECONDS = 1
DEFAULT_KEY_PREFIX = 'fsr'
DEFAULT_REGION = 'us-east-1'
S3_CLIENT_CACHE_SIZE = 8  # distinct credential sets kept per warm container
