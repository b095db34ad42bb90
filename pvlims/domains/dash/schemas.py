# pvlims/domains/dash/schemas.py

"""
'dash' 도메인 (대시보드) 응답 스키마를 정의하는 모듈입니다.
"""

import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class DashboardStats(BaseModel):
    service_requests: Dict[str, int]
    samples: Dict[str, int]
    test_plans: Dict[str, int]
    test_results: Dict[str, int]
    certifications: Dict[str, int]
    labs: Dict[str, int]


class KpiValues(BaseModel):
    completed_requests: int
    avg_turnaround_days: float
    test_pass_rate: float
    samples_processed: int
    certificates_issued: int
    on_time_completion_rate: float


class CurrentWorkload(BaseModel):
    active_requests: int
    active_tests: int
    samples_in_testing: int


class DashboardKpis(BaseModel):
    period_days: int
    kpis: KpiValues
    current_workload: CurrentWorkload


class ActivityItem(BaseModel):
    id: uuid.UUID
    type: str
    title: str
    subtitle: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class StandardSummary(BaseModel):
    id: uuid.UUID
    standard_code: str
    name: str
    category: Optional[str] = None
    total_test_plans: int
    active_tests: int
    completed_tests: int


class LabUtilization(BaseModel):
    id: uuid.UUID
    name: str
    code: str
    facility_type: str
    active_requests: int
    active_test_plans: int
    samples_in_lab: int
    utilization_percent: float


class DeadlineItem(BaseModel):
    id: uuid.UUID
    type: str
    reference: str
    title: Optional[str] = None
    deadline: date
    context: Optional[str] = None
    priority: Optional[str] = None


class UpcomingDeadlines(BaseModel):
    days: int
    deadlines: List[DeadlineItem]
