"""JSON endpoints: first-run setup, login/logout and env config editing."""
