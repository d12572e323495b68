"""Server-rendered pages for the setup console.

Pages are deliberately thin:
- served by the same FastAPI app as the JSON API
- inline CSS/JS, no static assets
- every form posts JSON to the API endpoints

Auth: the dashboard takes the session token from the X-Session-Id header or the
`session` query parameter, same as the API.
"""
