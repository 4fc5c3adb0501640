"""
ROPA Guardian modules package.

This package contains the core functionality for the ROPA Guardian application:
- risk_assessment: Rule-based risk scoring and the advisory-first risk assessor
- advisory_client: HTTP client for the legal advisory service with circuit breaker state
- report_builder: Paginated PDF layout engine shared by every report
- export_reports: PIA report, ROPA compliance report and approval form generation

Supporting modules:
- config: Environment driven settings
- errors: Exception hierarchy
- schemas: Option catalogues and input validation
- store: In-memory record storage and sample data
- processing_inventory: ROPA register service with CSV/Excel export
- pia: Privacy Impact Assessment questionnaire and risk register
- breach_record: Breach incident log with notification deadlines and Excel/PDF export
"""
