# Overview: Service-layer operations for manual cash-flow bookkeeping and its categories.

from __future__ import annotations

from datetime import datetime

from ..errors import InvalidRequest, NotFound, returns_result
from ..extensions import db
from ..models import CashFlowCategory, CashFlowEntry, Customer, Product, Sale
from ..models.cashflow import CASHFLOW_EXPENSE, CASHFLOW_INCOME, CASHFLOW_TYPES, PAYMENT_STATUSES, PAYMENT_UNPAID
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, ValidationError, require_choice, validate_payload
from .tenant_service import get_scoped, get_user, require_store, scoped_query

DEFAULT_INCOME_CATEGORIES = [
    ("Penjualan", "Pemasukan dari hasil penjualan usaha."),
    ("Pendapatan Jasa/Komisi", "Pemasukan dari komisi usaha atau jasa"),
    ("Penambahan Modal", "Pemasukan yang digunakan untuk modal tambahan usaha kamu."),
    ("Penagihan Utang/Cicilan", "Pemasukan dari pengembalian utang atau pembayaran cicilan."),
    ("Terima Pinjaman", "Pemasukan dari penerimaan uang pinjaman untuk usaha kamu."),
    ("Transaksi Agen Pembayaran", "Pemasukan dari transaksi sebagai agen pembayaran, contoh: agen BriLink."),
    ("Pendapatan Di Luar Usaha", "Pemasukan pribadi yang tidak berhubungan dengan kegiatan usaha. Contoh: hibah, hadiah, atau sedekah."),
    ("Pendapatan Lain-lain", "Pendapatan lainnya yang tidak masuk dalam kategori di atas."),
]

DEFAULT_EXPENSE_CATEGORIES = [
    ("Pembelian stok", "Pengeluaran untuk pembelian barang yang akan dijual kembali."),
    ("Pembelian bahan baku", "Pembelian bahan dasar yang akan diolah menjadi barang siap jual."),
    ("Biaya operasional", "Biaya untuk menjalankan kegiatan usaha. Contoh: sewa tempat, listrik, dan internet."),
    ("Gaji/Bonus Karyawan", "Pembayaran upah, gaji, atau bonus karyawan."),
    ("Pemberian Utang", "Pengeluaran untuk memberikan pinjaman uang."),
    ("Transaksi Agen Pembayaran", "Pengeluaran untuk transaksi sebagai agen pembayaran, contoh: agen BriLink."),
    ("Pembayaran Utang/Cicilan", "Pengeluaran usaha untuk membayar utang/cicilan."),
    ("Pengeluaran Di Luar Usaha", "Pengeluaran untuk kebutuhan pribadi yang tidak berhubungan dengan kegiatan usaha. Contoh: bayar berobat anak."),
    ("Pengeluaran Lain-lain", "Pengeluaran lainnya yang tidak masuk dalam kategori di atas."),
]

ENTRY_POLICY = ModelValidationPolicy(
    writable_fields={
        "type", "amount", "description", "category", "category_id",
        "product_id", "quantity", "cost_price",
        "payment_status", "customer_id", "notes", "sale_id",
    },
    required_on_create={"type", "amount", "description", "category"},
    non_negative={"amount", "quantity", "cost_price"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "type", "description", "is_active"},
    required_on_create={"name", "type"},
)


def create_default_categories(store_id: int) -> list[CashFlowCategory]:
    """
    Seed the standard income/expense categories for a new store.

    Does not commit; runs inside the store-creation transaction.
    """
    categories = [
        CashFlowCategory(store_id=store_id, name=name, type=CASHFLOW_INCOME, description=description)
        for name, description in DEFAULT_INCOME_CATEGORIES
    ] + [
        CashFlowCategory(store_id=store_id, name=name, type=CASHFLOW_EXPENSE, description=description)
        for name, description in DEFAULT_EXPENSE_CATEGORIES
    ]
    db.session.add_all(categories)
    return categories


def list_categories(store_id: int, type: str | None = None) -> list[CashFlowCategory]:
    query = scoped_query(CashFlowCategory, store_id).filter(CashFlowCategory.is_active.is_(True))
    if type is not None:
        query = query.filter(CashFlowCategory.type == type)
    return query.order_by(CashFlowCategory.type.asc(), CashFlowCategory.id.asc()).all()


@returns_result
def create_category(store_id: int, payload: dict) -> CashFlowCategory:
    require_store(store_id)
    patch = validate_payload(model=CashFlowCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
    require_choice(patch["type"], CASHFLOW_TYPES, "type")
    category = CashFlowCategory(store_id=store_id, **patch)
    db.session.add(category)
    db.session.commit()
    return category


def _check_entry_rules(store_id: int, patch: dict) -> None:
    if "type" in patch:
        require_choice(patch["type"], CASHFLOW_TYPES, "type")
    if "payment_status" in patch:
        require_choice(patch["payment_status"], PAYMENT_STATUSES, "payment_status")

    # Linked rows must live in the same store
    links = (
        ("category_id", CashFlowCategory, "category"),
        ("product_id", Product, "product"),
        ("customer_id", Customer, "customer"),
        ("sale_id", Sale, "sale"),
    )
    for field, model, label in links:
        if patch.get(field) is not None and get_scoped(model, store_id, patch[field]) is None:
            raise ValidationError(f"Unknown {label}", field)


@returns_result
def create_entry(store_id: int, payload: dict, actor_id: int) -> CashFlowEntry:
    """
    Record a manual income or expense.

    An 'unpaid' entry linked to a customer is a receivable until it is marked paid.
    """
    require_store(store_id)
    if get_user(actor_id) is None:
        raise InvalidRequest("Unknown actor", details={"actor_id": actor_id})

    patch = validate_payload(model=CashFlowEntry, payload=payload, policy=ENTRY_POLICY, partial=False)
    _check_entry_rules(store_id, patch)

    entry = CashFlowEntry(store_id=store_id, user_id=actor_id, date=utcnow(), **patch)
    db.session.add(entry)
    db.session.commit()
    return entry


@returns_result
def update_entry(store_id: int, entry_id: int, payload: dict) -> CashFlowEntry:
    entry = get_scoped(CashFlowEntry, store_id, entry_id)
    if entry is None:
        raise NotFound("Cash flow entry not found", details={"entry_id": entry_id})
    patch = validate_payload(model=CashFlowEntry, payload=payload, policy=ENTRY_POLICY, partial=True)
    _check_entry_rules(store_id, patch)
    for key, value in patch.items():
        setattr(entry, key, value)
    db.session.commit()
    return entry


@returns_result
def delete_entry(store_id: int, entry_id: int) -> bool:
    entry = get_scoped(CashFlowEntry, store_id, entry_id)
    if entry is None:
        raise NotFound("Cash flow entry not found", details={"entry_id": entry_id})
    db.session.delete(entry)
    db.session.commit()
    return True


def list_entries(
    store_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: int | None = None,
) -> list[CashFlowEntry]:
    """Entries newest first; start is inclusive, end exclusive."""
    query = scoped_query(CashFlowEntry, store_id)
    if start is not None:
        query = query.filter(CashFlowEntry.date >= start)
    if end is not None:
        query = query.filter(CashFlowEntry.date < end)
    if customer_id is not None:
        query = query.filter(CashFlowEntry.customer_id == customer_id)
    return query.order_by(CashFlowEntry.date.desc(), CashFlowEntry.id.desc()).all()


def list_unpaid_entries(store_id: int) -> list[CashFlowEntry]:
    return (
        scoped_query(CashFlowEntry, store_id)
        .filter(CashFlowEntry.payment_status == PAYMENT_UNPAID)
        .order_by(CashFlowEntry.date.desc(), CashFlowEntry.id.desc())
        .all()
    )
