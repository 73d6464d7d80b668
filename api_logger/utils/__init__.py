# Measurement, formatting and ASGI decoding helpers
