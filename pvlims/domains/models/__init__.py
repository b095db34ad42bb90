# pvlims/domains/models/__init__.py

"""
이 파일은 모든 도메인의 SQLModel 모델들을 한 곳에서 중앙 관리하여,
다른 모듈에서 쉽게 임포트할 수 있도록 하는 역할을 합니다.
SQLModel.metadata가 모든 테이블을 인식하도록 보장합니다.
"""

# usr (User, UserRole)
from pvlims.domains.usr.models import User, UserRole

# shared (AuditLog, Notification, ReferenceSequence)
from pvlims.domains.shared.models import AuditLog, Notification, ReferenceSequence

# lab (LabFacility, TestStandard, Customer)
from pvlims.domains.lab.models import LabFacility, TestStandard, Customer

# lims
from pvlims.domains.lims.models import ServiceRequest, Sample, ChainOfCustodyEntry, TestPlan, TestResult

# rpt (Report)
from pvlims.domains.rpt.models import Report

# cert (Certification)
from pvlims.domains.cert.models import Certification


__all__ = [
    # usr
    "User", "UserRole",
    # shared
    "AuditLog", "Notification", "ReferenceSequence",
    # lab
    "LabFacility", "TestStandard", "Customer",
    # lims
    "ServiceRequest", "Sample", "ChainOfCustodyEntry", "TestPlan", "TestResult",
    # rpt
    "Report",
    # cert
    "Certification",
]
