"""Terminal front end for flashdeck."""
