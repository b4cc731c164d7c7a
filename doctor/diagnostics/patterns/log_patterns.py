"""Application log signatures for common production failure modes.

Covers: dependency connectivity, database connectivity, memory exhaustion, missing files,
permissions, DNS, port conflicts, timeouts, null references and TLS.
"""

from doctor.core.models import Severity
from doctor.diagnostics.log_pattern_matcher import ErrorPattern

CONNECTION_REFUSED = ErrorPattern(
    name="Connection Refused",
    patterns=(r"connection refused", r"ECONNREFUSED"),
    description="Cannot connect to target service",
    causes=(
        "Target service not started yet",
        "Wrong service port",
        "Blocked by network policy",
    ),
    solutions=(
        "Check if service is running: kubectl get pods",
        "Verify service port: kubectl get svc",
        "Check network policy: kubectl get networkpolicy",
    ),
    severity=Severity.HIGH,
)

DATABASE_CONNECTION_ERROR = ErrorPattern(
    name="Database Connection Error",
    patterns=(
        r"could not connect to.*database",
        r"ETIMEDOUT.*:5432",
        r":3306",
        r":27017",
    ),
    description="Database connection failed",
    causes=(
        "DB service not ready",
        "Invalid connection string",
        "DB authentication failed",
    ),
    solutions=(
        "Check DB Pod status",
        "Verify environment variables (ConfigMap/Secret)",
        "Check DB service endpoints: kubectl get endpoints",
    ),
    severity=Severity.CRITICAL,
)

OUT_OF_MEMORY = ErrorPattern(
    name="Out of Memory",
    patterns=(r"out of memory", r"OOMKilled", r"cannot allocate memory"),
    description="Insufficient memory",
    causes=(
        "Memory limit set too low",
        "Memory leak",
        "Higher memory usage than expected",
    ),
    solutions=(
        "Increase memory limit: resources.limits.memory",
        "Profile application memory usage",
        "Increase pod count with HPA",
    ),
    severity=Severity.CRITICAL,
)

FILE_NOT_FOUND = ErrorPattern(
    name="File Not Found",
    patterns=(r"no such file", r"ENOENT", r"FileNotFoundError"),
    description="File or directory not found",
    causes=(
        "ConfigMap/Secret not mounted",
        "Invalid file path",
        "Volume mount failed",
    ),
    solutions=(
        "Check volumeMounts configuration",
        "Verify ConfigMap/Secret exists",
        "Verify file path is correct",
    ),
    severity=Severity.HIGH,
)

PERMISSION_DENIED = ErrorPattern(
    name="Permission Denied",
    patterns=(r"permission denied", r"EACCES", r"access denied"),
    description="Permission denied",
    causes=(
        "SecurityContext runAsUser setting",
        "Volume fsGroup not set",
        "File permission issues",
    ),
    solutions=(
        "Configure securityContext:\nfsGroup: 1000\nrunAsUser: 1000",
        "Check volume permissions",
        "Set permissions in Dockerfile",
    ),
    severity=Severity.HIGH,
)

DNS_RESOLUTION_FAILED = ErrorPattern(
    name="DNS Resolution Failed",
    patterns=(r"dns.*failed", r"getaddrinfo.*ENOTFOUND", r"name.*not known"),
    description="DNS lookup failed",
    causes=(
        "CoreDNS issues",
        "Invalid service name",
        "ndots configuration problem",
    ),
    solutions=(
        "Check CoreDNS Pod: kubectl get pods -n kube-system",
        "Service name format: <service>.<namespace>.svc.cluster.local",
        "Verify dnsPolicy setting",
    ),
    severity=Severity.HIGH,
)

PORT_ALREADY_IN_USE = ErrorPattern(
    name="Port Already in Use",
    patterns=(r"address already in use", r"EADDRINUSE"),
    description="Port already in use",
    causes=(
        "Multiple processes using same port",
        "Previous process not terminated properly",
    ),
    solutions=(
        "Change port number",
        "Implement graceful shutdown",
        "Configure preStop hook",
    ),
    severity=Severity.MEDIUM,
)

TIMEOUT = ErrorPattern(
    name="Timeout",
    patterns=(r"timeout", r"timed out", r"ETIMEDOUT"),
    description="Timeout occurred",
    causes=(
        "Response time too long",
        "Network latency",
        "Target service overloaded",
    ),
    solutions=(
        "Increase timeout value",
        "Optimize service performance",
        "Adjust readinessProbe timeout",
    ),
    severity=Severity.MEDIUM,
)

NULL_REFERENCE = ErrorPattern(
    name="Null Pointer / Undefined",
    patterns=(
        r"null pointer",
        r"undefined is not",
        r"cannot read property.*undefined",
        r"NullPointerException",
    ),
    description="Null/Undefined reference",
    causes=(
        "Environment variable not set",
        "Using uninitialized variable",
    ),
    solutions=(
        "Verify ConfigMap/Secret",
        "Set default value for environment variables",
        "Fix code",
    ),
    severity=Severity.MEDIUM,
)

TLS_ERROR = ErrorPattern(
    name="SSL/TLS Error",
    patterns=(r"ssl.*error", r"certificate.*invalid", r"CERT_"),
    description="SSL/TLS certificate error",
    causes=(
        "Expired certificate",
        "Self-signed certificate",
        "CA bundle missing",
    ),
    solutions=(
        "Renew certificate",
        "Verify tls.crt, tls.key Secret",
        "NODE_TLS_REJECT_UNAUTHORIZED=0 (development only)",
    ),
    severity=Severity.HIGH,
)

LOG_PATTERNS = (
    CONNECTION_REFUSED,
    DATABASE_CONNECTION_ERROR,
    OUT_OF_MEMORY,
    FILE_NOT_FOUND,
    PERMISSION_DENIED,
    DNS_RESOLUTION_FAILED,
    PORT_ALREADY_IN_USE,
    TIMEOUT,
    NULL_REFERENCE,
    TLS_ERROR,
)
