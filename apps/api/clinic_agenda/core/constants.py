"""Application constants."""

# Minimum lead time between "now" and the start of a bookable slot
BOOKING_LEAD_MINUTES = 30

# Granularity of generated candidate start times
SLOT_STEP_MINUTES = 15

# Reschedule suggestions
SUGGESTION_HORIZON_DAYS = 30
SUGGESTION_MAX_SLOTS_PER_DAY = 6

# Default clinic timezone when settings carry an unknown zone name
DEFAULT_CLINIC_TIMEZONE = "America/Sao_Paulo"
