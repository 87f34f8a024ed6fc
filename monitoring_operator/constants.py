"""Constants shared across the operator."""

# Custom resource
GROUP = "monitoring-operator.dev"
VERSION = "v1"
KIND = "MonitoringInstance"
PLURAL = "monitoringinstances"
API_VERSION = f"{GROUP}/{VERSION}"
CRD_NAME = f"{PLURAL}.{GROUP}"

CONTROLLER_NAME = "monitoringinstance"

# Labels and annotations stamped on every managed object
INSTANCE_LABEL = f"{GROUP}/instance"
ROLE_LABEL = f"{GROUP}/role"
COMPONENT_LABEL = "app.kubernetes.io/component"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY = "monitoring-operator"
FINGERPRINT_ANNOTATION = f"{GROUP}/fingerprint"
POLICIES_CHECKSUM_ANNOTATION = f"{GROUP}/policies-checksum"

NAME_PREFIX = "mi"

# Stack components, in the order their resource groups are applied
COMPONENT_CREDENTIALS = "credentials"
COMPONENT_OPENSEARCH = "opensearch"
COMPONENT_INDEX_LIFECYCLE = "index-lifecycle"
COMPONENT_DASHBOARDS = "opensearch-dashboards"
COMPONENT_GRAFANA = "grafana"
COMPONENT_PROMETHEUS = "prometheus"
COMPONENT_ALERTMANAGER = "alertmanager"
COMPONENT_INGRESS = "ingress"

# Ports and health paths
OPENSEARCH_HTTP_PORT = 9200
OPENSEARCH_TRANSPORT_PORT = 9300
DASHBOARDS_PORT = 5601
DASHBOARDS_HEALTH_PATH = "/api/status"
GRAFANA_PORT = 3000
GRAFANA_HEALTH_PATH = "/api/health"
PROMETHEUS_PORT = 9090
PROMETHEUS_LIVE_PATH = "/-/healthy"
PROMETHEUS_READY_PATH = "/-/ready"
ALERTMANAGER_PORT = 9093
ALERTMANAGER_HEALTH_PATH = "/-/healthy"

# Search cluster JVM defaults
DEV_HEAP_JAVA_OPTS = "-Xms700m -Xmx700m"
DATA_HEAP_JAVA_OPTS = "-Xms4g -Xmx4g"

# Readiness gate
READINESS_POLL_INTERVAL = 5
RED_HEALTH = "red"
DATA_ROLE = "d"
ES_USER_ENV = "ES_USER"
ES_PASSWORD_ENV = "ES_PASSWORD"

# Credentials
ADMIN_USERNAME = "admin"
PASSWORD_LENGTH = 16

# Operator defaults
DEFAULT_SETTINGS_CONFIGMAP = "monitoring-operator-config"
SETTINGS_CONFIGMAP_KEY = "config"
DEFAULT_CERT_DIR = "/etc/certs"
DEFAULT_HTTP_PORT = 8080
DEFAULT_WEBHOOK_PORT = 8443
DEFAULT_METRICS_PORT = 8090
STALL_THRESHOLD_SECONDS = 60

# Index lifecycle policies
ISM_MANAGED_DESCRIPTION = "__mi-managed__"
ISM_DEFAULT_DELETE_AGE = "7d"
ISM_DEFAULT_ROLLOVER_AGE = "1d"
POLICIES_PATH = "/policies"
# Dashboards index patterns are created with this time field
INDEX_PATTERN_TIME_FIELD = "@timestamp"

INGRESS_BODY_SIZE = "6M"
EXTERNAL_DNS_TTL = "60"
