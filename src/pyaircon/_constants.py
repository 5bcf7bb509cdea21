"""Internal constants shared across the library."""

API_BASE_URL = "https://api.netpie.io/v2"
MQTT_HOST = "mqtt.netpie.io"
MQTT_PORT = 1883

# The REST API prepends "@msg/" to the topic itself.
AIRCON_CONTROL_TOPIC = "aircon/control"
AIRCON_CONTROL_MQTT_TOPIC = f"@msg/{AIRCON_CONTROL_TOPIC}"

MQTT_RECONNECT_INTERVAL_S = 5
MQTT_CONNECT_TIMEOUT_S = 30.0
MQTT_PUBLISH_TIMEOUT_S = 10.0
MQTT_KEEPALIVE_S = 60
