"""
Quote document parser.

Reads a stored quote (JSON, backend field names) into the engine
dataclasses. The pydantic models mirror the document; ``to_quote`` and
``to_meta`` map them onto ``engines.base``.
"""

import json
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from engines.base import (
    ActivityShare,
    AssignmentEntry,
    Checklist,
    DateOrigin,
    InsuredPerson,
    PaymentDetails,
    Quote,
    QuoteEngineError,
    QuoteMeta,
    TechnicalAssignment,
    TechnicalBasis,
)

logger = logging.getLogger(__name__)

SWISS_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")


def parse_date(value: Any) -> Optional[date]:
    """Dates come as ISO (``2024-03-15``, optionally with time) or Swiss (``15.03.2024``)."""
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    match = SWISS_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return date(year, month, day)
    return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


class _Document(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ActivityModel(_Document):
    """Activity share of the technical basis (bb2merkmal)."""

    merkmal_boid: Optional[str] = Field(None, description="Activity id")
    prozent: Any = Field(None, description="Share in percent, as entered")
    merkmal_internalname: str = Field("", description="Activity code")

    @field_validator("merkmal_boid", mode="before")
    @classmethod
    def _id_as_text(cls, value):
        return None if value is None else str(value)


class AssignmentEntryModel(_Document):
    type: str = ""
    klasse: Optional[str] = None
    anteil: Optional[float] = None
    ukt: Optional[str] = None


class BasisModel(_Document):
    """Technical basis (bb) with the stored calculation result."""

    bb2merkmal: list[ActivityModel] = Field(default_factory=list)
    stellenprozente: Any = None
    anzahlma: Any = None
    basisstufe: Optional[int] = None
    nettopraemiensatz: Optional[float] = None
    vksatz: Optional[float] = None
    agenturkompetenz: Any = None
    bbtezu: list[AssignmentEntryModel] = Field(default_factory=list)

    def has_assignment(self) -> bool:
        return self.nettopraemiensatz is not None or bool(self.bbtezu)


class PersonModel(_Document):
    vorname: str = ""
    name: str = ""
    geburtsdatum: Optional[date] = None
    land: str = "CH"
    ort: str = ""
    strasse: str = ""
    hausnummer: str = ""
    plz: str = ""
    anzahl_unfaelle: Optional[int] = None
    anzahl_laufende_unfaelle: Optional[int] = None

    @field_validator("geburtsdatum", mode="before")
    @classmethod
    def _birth_date(cls, value):
        return parse_date(value)

    @field_validator("hausnummer", "plz", mode="before")
    @classmethod
    def _as_text(cls, value):
        return "" if value is None else str(value)


class ChecklistModel(_Document):
    """Underwriting checklist (checkliste)."""

    id: Optional[int] = None
    gueltab: Optional[date] = None
    alter: Optional[int] = None
    mehrere_unfaelle: bool = False
    laufende_unfaelle: bool = False
    bonitaet_syrius: Optional[str] = None
    bonitaet_crif: Optional[str] = None
    bonitaet_crif_bemerkung: str = ""
    audit: bool = False
    bt_malus: float = 0.0
    genehmigung_art: Optional[str] = None
    report_id: Optional[str] = None

    @field_validator("gueltab", mode="before")
    @classmethod
    def _valid_from(cls, value):
        return parse_date(value)

    @field_validator("bonitaet_crif_bemerkung", mode="before")
    @classmethod
    def _empty_text(cls, value):
        return value or ""

    @field_validator("bt_malus", mode="before")
    @classmethod
    def _malus(cls, value):
        return value or 0.0

    @field_validator("report_id", mode="before")
    @classmethod
    def _report_id(cls, value):
        return None if value is None else str(value)


class MetaModel(_Document):
    """Engine state stored alongside the quote."""

    tezuHash: Optional[str] = None
    datumHerkunft: Optional[str] = None
    gueltabGeaendert: bool = False
    gueltbisGeaendert: bool = False
    vertragsdauerGeaendert: bool = False


class QuoteDocument(_Document):
    """A stored FUV quote (Offerte)."""

    id: Optional[int] = None
    offertenr: str = ""
    art: Optional[str] = None
    gueltab: Optional[date] = None
    gueltbis: Optional[date] = None
    ablaufdatum: Optional[str] = Field(None, alias="vertragsdauer")
    avb: Optional[str] = None
    stellung_im_betrieb: Optional[str] = None
    beschaeft_grad: Optional[str] = None
    agenturkompetenz: Optional[str] = None
    bb: BasisModel = Field(default_factory=BasisModel)
    variante: list[dict[str, Any]] = Field(default_factory=list)
    praemienzahlung: Optional[str] = None
    bank: Optional[str] = None
    bank_plz: Optional[str] = None
    bank_ort: Optional[str] = None
    iban: Optional[str] = None
    kontoinhaber: Optional[str] = None
    person: PersonModel = Field(default_factory=PersonModel)
    checkliste: Optional[ChecklistModel] = None
    readonly: bool = False
    meta: MetaModel = Field(default_factory=MetaModel)

    @field_validator("gueltab", "gueltbis", mode="before")
    @classmethod
    def _contract_dates(cls, value):
        return parse_date(value)

    def to_quote(self) -> Quote:
        basis = TechnicalBasis(
            activities=tuple(
                ActivityShare(
                    activity_id=activity.merkmal_boid or "",
                    percentage=activity.prozent,
                    activity_code=activity.merkmal_internalname,
                )
                for activity in self.bb.bb2merkmal
            ),
            work_percentage=self.bb.stellenprozente,
            headcount=self.bb.anzahlma,
        )

        assignment = None
        if self.bb.has_assignment():
            assignment = TechnicalAssignment(
                base_premium_rate=self.bb.nettopraemiensatz or 0.0,
                base_level=self.bb.basisstufe,
                entries=[
                    AssignmentEntry(
                        assignment_type=entry.type,
                        risk_class=entry.klasse or "",
                        class_portion=entry.anteil,
                        subclass_part=entry.ukt or "",
                    )
                    for entry in self.bb.bbtezu
                ],
                admin_cost_rate=self.bb.vksatz,
                agency_competence=self.bb.agenturkompetenz,
            )

        checklist = None
        if self.checkliste is not None:
            c = self.checkliste
            checklist = Checklist(
                valid_from=c.gueltab,
                insured_age=c.alter,
                multiple_accidents=c.mehrere_unfaelle,
                open_accidents=c.laufende_unfaelle,
                bonity_internal=c.bonitaet_syrius,
                bonity_external=c.bonitaet_crif,
                bonity_external_comment=c.bonitaet_crif_bemerkung,
                audit=c.audit,
                malus_surcharge=c.bt_malus,
                approval_type=c.genehmigung_art,
                report_id=c.report_id,
                id=c.id,
            )

        p = self.person
        return Quote(
            id=self.id,
            number=self.offertenr,
            quote_type=self.art,
            start_date=self.gueltab,
            end_date=self.gueltbis,
            duration_code=self.ablaufdatum,
            terms_code=self.avb,
            position_code=self.stellung_im_betrieb,
            workload_code=self.beschaeft_grad,
            basis=basis,
            assignment=assignment,
            agency_competence_code=self.agenturkompetenz,
            variant_records=[dict(record) for record in self.variante],
            payment=PaymentDetails(
                frequency=self.praemienzahlung,
                bank_name=self.bank,
                postcode=self.bank_plz,
                town=self.bank_ort,
                iban=self.iban,
                account_holder=self.kontoinhaber,
            ),
            person=InsuredPerson(
                first_name=p.vorname,
                last_name=p.name,
                birth_date=p.geburtsdatum,
                country=p.land,
                city=p.ort,
                street=p.strasse,
                house_number=p.hausnummer,
                zipcode=p.plz,
                accident_count=p.anzahl_unfaelle,
                open_accident_count=p.anzahl_laufende_unfaelle,
            ),
            checklist=checklist,
            read_only=self.readonly,
        )

    def to_meta(self) -> QuoteMeta:
        origin = DateOrigin.NOT_INITIALIZED
        if self.meta.datumHerkunft:
            try:
                origin = DateOrigin(self.meta.datumHerkunft.upper())
            except ValueError:
                logger.warning(f"Unknown date origin {self.meta.datumHerkunft!r}, ignoring")
        return QuoteMeta(
            stored_hash=self.meta.tezuHash,
            date_origin=origin,
            start_changed=self.meta.gueltabGeaendert,
            end_changed=self.meta.gueltbisGeaendert,
            duration_changed=self.meta.vertragsdauerGeaendert,
        )


def parse_quote(data: dict) -> Tuple[Quote, QuoteMeta]:
    """Parse a quote document into the engine's quote and metadata."""
    try:
        document = QuoteDocument.model_validate(data)
    except ValidationError as e:
        raise QuoteEngineError(f"Ungültiges Offertendokument: {e}") from e
    return document.to_quote(), document.to_meta()


def load_quote(path: Union[str, Path]) -> Tuple[Quote, QuoteMeta]:
    """Load a quote document from a JSON file."""
    path = Path(path)
    logger.info(f"Loading quote from {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise QuoteEngineError(f"Offertendatei {path} ist kein gültiges JSON: {e}") from e

    if not isinstance(data, dict):
        raise QuoteEngineError(f"Offertendatei {path} enthält kein Objekt")
    return parse_quote(data)
