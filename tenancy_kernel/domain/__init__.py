"""Pure domain helpers: clock, money, month keys, typed entry metadata."""
