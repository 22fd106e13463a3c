"""civibridge: CiviCRM API v4 connector for workflow automation."""

PACKAGE_VERSION = "0.1.0"
