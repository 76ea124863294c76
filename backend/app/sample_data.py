"""Demo fixture: an admin, two users and a few records of every kind.

Everything goes through the public repository operations, so the same loader
seeds the in-memory store at start-up and a fresh database via seed_data.py.
Dates are relative to ``now`` so the dashboard always has something expiring.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .config import settings
from .repositories.base import Repository
from .schemas import (
    ActivityCreate,
    AgreementCreate,
    DocumentCreate,
    PnbpTransactionCreate,
    QuotaUsageCreate,
    RequestCreate,
    UpsertUser,
)
from .services.lifecycle_rules import as_utc, now_utc

logger = logging.getLogger(__name__)


def _days(n: float) -> timedelta:
    return timedelta(days=n)


def load_sample_data(
    repo: Repository, *, now: datetime | None = None, admin_id: str | None = None
) -> dict[str, int]:
    """Populate ``repo`` and return how many records of each kind were created.

    The admin account uses ``DEV_USER_ID`` unless ``admin_id`` is given.
    """
    now = as_utc(now) if now else now_utc()
    admin_id = admin_id or settings.DEV_USER_ID

    users_data = [
        {
            "id": admin_id,
            "email": "admin@datakependudukan.gov.id",
            "first_name": "Admin",
            "last_name": "Pratama",
            "role": "admin",
            "quota": 1000,
        },
        {
            "id": "user-001",
            "email": "budi.santoso@example.com",
            "first_name": "Budi",
            "last_name": "Santoso",
            "role": "user",
            "quota": 100,
        },
        {
            "id": "user-002",
            "email": "siti.rahma@example.com",
            "first_name": "Siti",
            "last_name": "Rahma",
            "role": "user",
            "quota": 100,
        },
    ]
    for user_data in users_data:
        repo.upsert_user(UpsertUser(is_active=True, **user_data))

    pks = repo.create_document(DocumentCreate(
        title="Perjanjian Kerja Sama (PKS) Tahun 2024",
        description="Perjanjian kerja sama antara Dinas Kependudukan dan Catatan Sipil",
        file_name="pks-2024-signed.pdf",
        file_path="/uploads/pks-2024-signed.pdf",
        file_size=2048576,
        mime_type="application/pdf",
        uploaded_by=admin_id,
        status="approved",
        category="PKS",
        expiration_date=now + _days(20),
    ))
    juknis = repo.create_document(DocumentCreate(
        title="Petunjuk Teknis (Juknis) Akta Kelahiran",
        description="Petunjuk teknis pengurusan akta kelahiran untuk warga baru",
        file_name="juknis-akta-kelahiran.pdf",
        file_path="/uploads/juknis-akta-kelahiran.pdf",
        file_size=1024000,
        mime_type="application/pdf",
        uploaded_by="user-001",
        status="pending",
        category="Juknis",
        expiration_date=now + _days(200),
        version="2.1",
    ))

    # Oldest first, so newest-first listings come out in a natural order.
    activities_data = [
        ("user-001", "download", "Budi Santoso download juknis akta kelahiran", {"document_id": juknis.id}),
        ("user-002", "upload", "Siti Rahma upload dokumen PKS", {"file_name": "dokumen-pks-2025.pdf"}),
        ("user-001", "login", "Budi Santoso berhasil login", {"ip": "192.168.1.1"}),
    ]
    for user_id, activity_type, description, metadata in activities_data:
        repo.create_activity(ActivityCreate(
            user_id=user_id, type=activity_type, description=description, metadata=metadata
        ))

    requests_data = [
        RequestCreate(
            user_id="user-001",
            type="extension",
            title="Perpanjangan Akses Database",
            description="Memerlukan perpanjangan akses untuk menyelesaikan laporan bulanan divisi kependudukan.",
            priority="normal",
        ),
        RequestCreate(
            user_id="user-002",
            type="quota_reset",
            title="Reset Kuota Download",
            description="Kuota download dokumen sudah habis, memerlukan reset untuk keperluan audit internal.",
            priority="urgent",
        ),
    ]
    for request in requests_data:
        repo.create_request(request)

    year = now.year
    agreements_data = [
        AgreementCreate(
            user_id="user-001", document_id=pks.id, type="PKS",
            agreement_number=f"PKS/{year}/001",
            start_date=now - _days(345), end_date=now + _days(20),
        ),
        AgreementCreate(
            user_id="user-002", document_id=juknis.id, type="Juknis",
            agreement_number=f"JUK/{year}/002",
            start_date=now - _days(165), end_date=now + _days(200),
        ),
        AgreementCreate(
            user_id=admin_id, document_id=pks.id, type="POC",
            agreement_number=f"POC/{year}/003",
            start_date=now - _days(80), end_date=now + _days(10),
            status="pending_renewal",
            renewal_requested=True, renewal_request_date=now - _days(5),
        ),
        AgreementCreate(
            user_id="user-001", document_id=juknis.id, type="PKS",
            agreement_number=f"PKS/{year - 1}/004",
            start_date=now - _days(730), end_date=now - _days(365),
            status="expired",
        ),
    ]
    for agreement in agreements_data:
        repo.create_agreement(agreement)

    quota_data = [
        ("user-001", "document_download", 100, 75, 10),
        ("user-002", "document_download", 100, 45, 15),
        (admin_id, "document_download", 1000, 350, 25),
        ("user-001", "api_calls", 500, 480, 5),
    ]
    for user_id, quota_type, total, used, reset_in_days in quota_data:
        repo.create_quota_usage(QuotaUsageCreate(
            user_id=user_id,
            quota_type=quota_type,
            total_quota=total,
            used_amount=used,
            period="monthly",
            reset_date=now + _days(reset_in_days),
        ))

    transactions_data = [
        ("user-001", "akta_kelahiran", 50000, "completed", "bank_transfer", 2,
         "Pembayaran untuk akta kelahiran anak pertama"),
        ("user-002", "akta_kematian", 75000, "pending", "virtual_account", None,
         "Pembayaran untuk akta kematian"),
        (admin_id, "ktp_baru", 100000, "completed", "e_wallet", 5,
         "Pembayaran untuk pembuatan KTP baru"),
        ("user-001", "kk_baru", 25000, "failed", "bank_transfer", None,
         "Pembayaran gagal untuk kartu keluarga baru"),
    ]
    for n, (user_id, service, amount, status, method, paid_days_ago, notes) in enumerate(transactions_data, start=1):
        repo.create_pnbp_transaction(PnbpTransactionCreate(
            user_id=user_id,
            transaction_id=f"TRX/{year}/{n:03d}",
            service_type=service,
            amount=amount,
            status=status,
            payment_method=method,
            reference_number=f"REF-{year}-{n:03d}",
            transaction_date=now - _days(paid_days_ago or 1),
            payment_date=now - _days(paid_days_ago) if paid_days_ago is not None else None,
            notes=notes,
        ))

    counts = {
        "users": len(users_data),
        "documents": 2,
        "activities": len(activities_data),
        "requests": len(requests_data),
        "agreements": len(agreements_data),
        "quota_usage": len(quota_data),
        "pnbp_transactions": len(transactions_data),
    }
    logger.info("Loaded sample data: %s", counts)
    return counts
