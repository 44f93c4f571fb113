"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models import ChainPriceTag, PriceTagDeviceAssociation, Store, StoreIssue, StoreTable, Table
from app.services.firebase_client import get_firestore_client


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


def _doc_with_id(doc) -> Dict[str, Any]:
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


# -------- Table repository --------

class TableRepo:
    @staticmethod
    def get_sql(db: Session, table_id: str) -> Optional[Table]:
        return db.query(Table).filter(Table.id == table_id).first()

    @staticmethod
    def get_document_sql(db: Session, table_id: str) -> Optional[Dict[str, Any]]:
        table = TableRepo.get_sql(db, table_id)
        return table.to_document() if table else None

    @staticmethod
    def save_layout_sql(db: Session, table_id: str, layout_doc: Dict[str, Any]) -> bool:
        table = TableRepo.get_sql(db, table_id)
        if not table:
            return False
        for field, value in layout_doc.items():
            setattr(table, field, value)
        table.updated_at = datetime.utcnow()
        db.commit()
        return True

    # Firestore shape: collection "tables/{table_id}" with the same fields as the SQL row
    @staticmethod
    def get_document_fs(table_id: str) -> Optional[Dict[str, Any]]:
        fs = get_firestore_client()
        if not fs:
            return None
        doc = fs.collection("tables").document(table_id).get()
        return _doc_with_id(doc) if doc.exists else None

    @staticmethod
    def save_layout_fs(table_id: str, layout_doc: Dict[str, Any]) -> bool:
        fs = get_firestore_client()
        ref = fs.collection("tables").document(table_id)
        if not ref.get().exists:
            return False
        data = dict(layout_doc)
        data["updated_at"] = datetime.utcnow().isoformat()
        ref.set(data, merge=True)
        return True

    @staticmethod
    def get_document(db: Session, table_id: str) -> Optional[Dict[str, Any]]:
        if use_firestore():
            return TableRepo.get_document_fs(table_id)
        return TableRepo.get_document_sql(db, table_id)

    @staticmethod
    def save_layout(db: Session, table_id: str, layout_doc: Dict[str, Any]) -> bool:
        if use_firestore():
            return TableRepo.save_layout_fs(table_id, layout_doc)
        return TableRepo.save_layout_sql(db, table_id, layout_doc)


# -------- Store repository --------

class StoreRepo:
    @staticmethod
    def get_sql(db: Session, store_id: str) -> Optional[Store]:
        return db.query(Store).filter(Store.id == store_id).first()

    @staticmethod
    def get_document_sql(db: Session, store_id: str) -> Optional[Dict[str, Any]]:
        store = StoreRepo.get_sql(db, store_id)
        if not store:
            return None
        return {
            "id": store.id,
            "name": store.name,
            "category": store.category,
            "chain": store.chain,
            "location": store.location,
        }

    @staticmethod
    def table_ids_sql(db: Session, store_id: str) -> List[str]:
        links = db.query(StoreTable).filter(StoreTable.store_id == store_id).order_by(StoreTable.created_at).all()
        return [link.table_id for link in links]

    @staticmethod
    def chains_for_table_sql(db: Session, table_id: str) -> List[str]:
        rows = db.query(Store.chain).join(StoreTable, StoreTable.store_id == Store.id).filter(
            StoreTable.table_id == table_id
        ).distinct().all()
        return sorted(row.chain for row in rows if row.chain)

    # Firestore shape: "stores/{store_id}" documents, "store_tables" documents {store_id, table_id}
    @staticmethod
    def get_document_fs(store_id: str) -> Optional[Dict[str, Any]]:
        fs = get_firestore_client()
        if not fs:
            return None
        doc = fs.collection("stores").document(store_id).get()
        return _doc_with_id(doc) if doc.exists else None

    @staticmethod
    def table_ids_fs(store_id: str) -> List[str]:
        fs = get_firestore_client()
        docs = fs.collection("store_tables").where("store_id", "==", store_id).get()
        return [d.to_dict().get("table_id") for d in docs if d.to_dict().get("table_id")]

    @staticmethod
    def chains_for_table_fs(table_id: str) -> List[str]:
        fs = get_firestore_client()
        chains = set()
        for link in fs.collection("store_tables").where("table_id", "==", table_id).get():
            store = StoreRepo.get_document_fs(link.to_dict().get("store_id"))
            if store and store.get("chain"):
                chains.add(store["chain"])
        return sorted(chains)

    @staticmethod
    def get_document(db: Session, store_id: str) -> Optional[Dict[str, Any]]:
        if use_firestore():
            return StoreRepo.get_document_fs(store_id)
        return StoreRepo.get_document_sql(db, store_id)

    @staticmethod
    def table_ids(db: Session, store_id: str) -> List[str]:
        if use_firestore():
            return StoreRepo.table_ids_fs(store_id)
        return StoreRepo.table_ids_sql(db, store_id)

    @staticmethod
    def chains_for_table(db: Session, table_id: str) -> List[str]:
        if use_firestore():
            return StoreRepo.chains_for_table_fs(table_id)
        return StoreRepo.chains_for_table_sql(db, table_id)


# -------- Issue repository --------

class IssueRepo:
    @staticmethod
    def list_for_store_sql(db: Session, store_id: str) -> List[Dict[str, Any]]:
        issues = db.query(StoreIssue).filter(StoreIssue.store_id == store_id).order_by(StoreIssue.created_at).all()
        return [issue.to_dict() for issue in issues]

    # Firestore issue docs under collection "store_issues" with a store_id field
    @staticmethod
    def list_for_store_fs(store_id: str) -> List[Dict[str, Any]]:
        fs = get_firestore_client()
        docs = fs.collection("store_issues").where("store_id", "==", store_id).get()
        return [_doc_with_id(d) for d in docs]

    @staticmethod
    def list_for_store(db: Session, store_id: str) -> List[Dict[str, Any]]:
        if use_firestore():
            return IssueRepo.list_for_store_fs(store_id)
        return IssueRepo.list_for_store_sql(db, store_id)


# -------- Price tag repository --------

class PriceTagRepo:
    @staticmethod
    def add_association_sql(db: Session, table_id: str, tag_name: str, device_id: str, device_name: str) -> None:
        db.add(PriceTagDeviceAssociation(
            table_id=table_id,
            price_tag_name=tag_name,
            device_id=device_id,
            device_name=device_name,
        ))
        db.commit()

    @staticmethod
    def remove_association_sql(db: Session, table_id: str, tag_name: str, device_id: str) -> None:
        db.query(PriceTagDeviceAssociation).filter(
            PriceTagDeviceAssociation.table_id == table_id,
            PriceTagDeviceAssociation.price_tag_name == tag_name,
            PriceTagDeviceAssociation.device_id == device_id,
        ).delete()
        db.commit()

    @staticmethod
    def list_associations_sql(db: Session, table_id: str) -> List[PriceTagDeviceAssociation]:
        return db.query(PriceTagDeviceAssociation).filter(
            PriceTagDeviceAssociation.table_id == table_id
        ).order_by(PriceTagDeviceAssociation.price_tag_name).all()

    @staticmethod
    def register_chain_tags_sql(db: Session, chain: str, names: List[str]) -> int:
        existing = {
            row.name for row in db.query(ChainPriceTag.name).filter(ChainPriceTag.chain == chain).all()
        }
        created = 0
        for name in names:
            if name in existing:
                continue
            db.add(ChainPriceTag(chain=chain, name=name))
            existing.add(name)
            created += 1
        db.commit()
        return created

    # Firestore: "price_tag_device_associations" and "chain_price_tags" collections
    @staticmethod
    def add_association_fs(table_id: str, tag_name: str, device_id: str, device_name: str) -> None:
        fs = get_firestore_client()
        fs.collection("price_tag_device_associations").add({
            "table_id": table_id,
            "price_tag_name": tag_name,
            "device_id": device_id,
            "device_name": device_name,
            "created_at": datetime.utcnow().isoformat(),
        })

    @staticmethod
    def remove_association_fs(table_id: str, tag_name: str, device_id: str) -> None:
        fs = get_firestore_client()
        docs = fs.collection("price_tag_device_associations").where("table_id", "==", table_id).where(
            "price_tag_name", "==", tag_name
        ).where("device_id", "==", device_id).get()
        for d in docs:
            d.reference.delete()

    @staticmethod
    def register_chain_tags_fs(chain: str, names: List[str]) -> int:
        fs = get_firestore_client()
        created = 0
        for name in names:
            # deterministic id keeps one document per (chain, name)
            ref = fs.collection("chain_price_tags").document(f"{chain}::{name}")
            if ref.get().exists:
                continue
            ref.set({"chain": chain, "name": name, "created_at": datetime.utcnow().isoformat()})
            created += 1
        return created

    @staticmethod
    def toggle_association(db: Session, table_id: str, tag_name: str, device_id: str,
                           device_name: str, associate: bool) -> None:
        if use_firestore():
            if associate:
                PriceTagRepo.add_association_fs(table_id, tag_name, device_id, device_name)
            else:
                PriceTagRepo.remove_association_fs(table_id, tag_name, device_id)
            return
        if associate:
            PriceTagRepo.add_association_sql(db, table_id, tag_name, device_id, device_name)
        else:
            PriceTagRepo.remove_association_sql(db, table_id, tag_name, device_id)

    @staticmethod
    def register_chain_tags(db: Session, chain: str, names: List[str]) -> int:
        if use_firestore():
            return PriceTagRepo.register_chain_tags_fs(chain, names)
        return PriceTagRepo.register_chain_tags_sql(db, chain, names)
