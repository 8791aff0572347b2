"""FHIR resource validation against StructureDefinitions.

This module is the entry-point of a validation run. A run checks the
resource type, walks the document against its StructureDefinition (see
``validation.structural``), hands the queued invariants to the external
FHIRPath evaluator in one batch and assembles an ``OperationOutcome``.

Thread Safety:
    Thread-safe: every run creates its own outcome and invariant collector;
    the registry is frozen and the evaluator clients keep no per-run state.

Performance:
    One evaluator round-trip per run, skipped entirely when no invariant
    applies. Regex compilation is cached process-wide.

Example:
    >>> registry = load_registry("definitions/r4")
    >>> validator = FHIRValidator(registry, evaluator=build_evaluator(settings.evaluator))
    >>> outcome = validator.validate_resource({"resourceType": "Patient", "name": [{}]})
    >>> outcome.to_fhir()["resourceType"]
    'OperationOutcome'
"""

from __future__ import annotations

# ==============================================================================
# IMPORTS
# ==============================================================================
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog
from opentelemetry import trace

from fhir_conformance.config.settings import AppSettings, ValidationSettings
from fhir_conformance.evaluation import InvariantEvaluator, build_evaluator
from fhir_conformance.models.definitions import StructureDefinition
from fhir_conformance.models.invariants import InvariantJob, InvariantResult
from fhir_conformance.models.outcome import IssueType, OperationOutcome
from fhir_conformance.utils.errors import (
    DefinitionLoadError,
    EvaluatorError,
    FatalValidationError,
)
from fhir_conformance.utils.logging import validation_run

from .invariants import InvariantCollector
from .loader import load_registry
from .outcome_builder import OutcomeBuilder
from .registry import DefinitionRegistry
from .structural import StructuralValidator

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

# ==============================================================================
# RESOURCE CATALOGUE
# ==============================================================================

FHIR_R4_RESOURCE_TYPES: tuple[str, ...] = (
    "Account", "ActivityDefinition", "AdverseEvent", "AllergyIntolerance", "Appointment",
    "AppointmentResponse", "AuditEvent", "Basic", "Binary", "BiologicallyDerivedProduct",
    "BodyStructure", "Bundle", "CapabilityStatement", "CarePlan", "CareTeam",
    "CatalogEntry", "ChargeItem", "ChargeItemDefinition", "Claim", "ClaimResponse",
    "ClinicalImpression", "CodeSystem", "Communication", "CommunicationRequest",
    "CompartmentDefinition", "Composition", "ConceptMap", "Condition", "Consent", "Contract",
    "Coverage", "CoverageEligibilityRequest", "CoverageEligibilityResponse", "DetectedIssue",
    "Device", "DeviceDefinition", "DeviceMetric", "DeviceRequest", "DeviceUseStatement",
    "DiagnosticReport", "DocumentManifest", "DocumentReference", "EffectEvidenceSynthesis",
    "Encounter", "Endpoint", "EnrollmentRequest", "EnrollmentResponse", "EpisodeOfCare",
    "EventDefinition", "Evidence", "EvidenceVariable", "ExampleScenario",
    "ExplanationOfBenefit", "FamilyMemberHistory", "Flag", "Goal", "GraphDefinition", "Group",
    "GuidanceResponse", "HealthcareService", "ImagingStudy", "Immunization",
    "ImmunizationEvaluation", "ImmunizationRecommendation", "ImplementationGuide",
    "InsurancePlan", "Invoice", "Library", "Linkage", "List", "Location", "Measure",
    "MeasureReport", "Media", "Medication", "MedicationAdministration", "MedicationDispense",
    "MedicationKnowledge", "MedicationRequest", "MedicationStatement", "MedicinalProduct",
    "MedicinalProductAuthorization", "MedicinalProductContraindication",
    "MedicinalProductIndication", "MedicinalProductIngredient", "MedicinalProductInteraction",
    "MedicinalProductManufactured", "MedicinalProductPackaged",
    "MedicinalProductPharmaceutical", "MedicinalProductUndesirableEffect",
    "MessageDefinition", "MessageHeader", "MolecularSequence", "NamingSystem",
    "NutritionOrder", "Observation", "ObservationDefinition", "OperationDefinition",
    "OperationOutcome", "Organization", "OrganizationAffiliation", "Parameters", "Patient",
    "PaymentNotice", "PaymentReconciliation", "Person", "PlanDefinition", "Practitioner",
    "PractitionerRole", "Procedure", "Provenance", "Questionnaire", "QuestionnaireResponse",
    "RelatedPerson", "RequestGroup", "ResearchDefinition", "ResearchElementDefinition",
    "ResearchStudy", "ResearchSubject", "RiskAssessment", "RiskEvidenceSynthesis", "Schedule",
    "SearchParameter", "ServiceRequest", "Slot", "Specimen", "SpecimenDefinition",
    "StructureDefinition", "StructureMap", "Subscription", "Substance",
    "SubstanceNucleicAcid", "SubstancePolymer", "SubstanceProtein",
    "SubstanceReferenceInformation", "SubstanceSourceMaterial", "SubstanceSpecification",
    "SupplyDelivery", "SupplyRequest", "Task", "TerminologyCapabilities", "TestReport",
    "TestScript", "ValueSet", "VerificationResult", "VisionPrescription",
)  # fmt: skip


# ==============================================================================
# VALIDATOR IMPLEMENTATION
# ==============================================================================


class FHIRValidator:
    """Validate FHIR resources against registered StructureDefinitions.

    Checks required fields, cardinality, single-versus-array arity and
    primitive formats, and delegates constraint invariants to an external
    FHIRPath evaluator.
    """

    def __init__(
        self,
        registry: DefinitionRegistry,
        *,
        evaluator: InvariantEvaluator | None = None,
        settings: ValidationSettings | None = None,
        resource_types: Sequence[str] = FHIR_R4_RESOURCE_TYPES,
    ) -> None:
        """Initialize the validator.

        Args:
            registry: Registry holding every definition needed for a run;
                frozen before the first validation.
            evaluator: FHIRPath evaluator for invariants. When omitted the
                collected invariants are dropped and only structural checks
                contribute to the outcome.
            settings: Walk and outcome options; defaults apply when omitted.
            resource_types: Catalogue of accepted resource types.
        """
        self.registry = registry
        self.evaluator = evaluator
        self.settings = settings or ValidationSettings()
        self.resource_types = tuple(resource_types)
        self._known_types = frozenset(self.resource_types)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> FHIRValidator:
        """Load the definitions directory and build the configured evaluator.

        Raises:
            DefinitionLoadError: When no definitions directory is configured or
                it cannot be read.
        """
        path = settings.validation.definitions_path
        if path is None:
            raise DefinitionLoadError("validation.definitions_path is not configured")
        return cls(
            load_registry(path),
            evaluator=build_evaluator(settings.evaluator),
            settings=settings.validation,
        )

    def validate_resource(self, document: Mapping[str, Any]) -> OperationOutcome:
        """Validate one FHIR JSON document.

        Args:
            document: Decoded JSON object of the resource.

        Returns:
            The ``OperationOutcome`` of the run. A structurally invalid
            resource is a normal return, not an exception.

        Raises:
            FatalValidationError: When the document has no string
                ``resourceType`` or no definition is registered for it.
        """
        resource_type = document.get("resourceType")
        run_type = resource_type if isinstance(resource_type, str) else None
        with validation_run(run_type) as run_id:
            with tracer.start_as_current_span("fhir.validate") as span:
                span.set_attribute("fhir.run_id", run_id)
                if not isinstance(resource_type, str):
                    raise FatalValidationError("resource type not found")
                span.set_attribute("fhir.resource_type", resource_type)

                builder = OutcomeBuilder(code_overrides=self.settings.issue_code_overrides)
                if resource_type not in self._known_types:
                    builder.add_issue(
                        IssueType.INVALID,
                        f"Invalid resource type '{resource_type}'. "
                        f"Expected one of: {', '.join(self.resource_types)}",
                        details="Invalid resource type",
                    )
                    return builder.outcome

                definition = self.registry.structure_definition(resource_type)
                if definition is None:
                    raise FatalValidationError(
                        f"resource type '{resource_type}' not found in definitions",
                        resource_type=resource_type,
                    )

                outcome = self._run(document, definition, builder)
                span.set_attribute("fhir.issue_count", len(outcome))
                logger.info(
                    "fhir.validate.completed",
                    issues=len(outcome),
                    valid=outcome.is_valid,
                )
                return outcome

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _run(
        self,
        document: Mapping[str, Any],
        definition: StructureDefinition,
        builder: OutcomeBuilder,
    ) -> OperationOutcome:
        collector = InvariantCollector(skipped_keys=self.settings.skipped_constraint_keys)
        walker = StructuralValidator(
            self.registry, builder, collector, max_depth=self.settings.max_depth
        )
        walker.validate(document, document, definition, definition)

        jobs = collector.drain()
        if not jobs:
            return builder.finalize()
        if self.evaluator is None:
            logger.debug("fhir.invariants.skipped", jobs=len(jobs), reason="no evaluator")
            return builder.finalize()

        try:
            results = self._evaluate(self.evaluator, jobs)
        except EvaluatorError as exc:
            logger.warning("fhir.invariants.failed", error=str(exc))
            builder.add_exception(f"Error validating constraint {exc}")
            return builder.outcome
        return builder.finalize(results)

    def _evaluate(
        self, evaluator: InvariantEvaluator, jobs: list[InvariantJob]
    ) -> Iterable[InvariantResult]:
        with tracer.start_as_current_span("fhir.invariants.evaluate") as span:
            span.set_attribute("fhir.invariant_jobs", len(jobs))
            response = evaluator.evaluate(jobs)
            span.set_attribute("fhir.invariant_failures", len(response.failures))
        logger.debug(
            "fhir.invariants.evaluated",
            jobs=len(jobs),
            failures=len(response.failures),
            unmatched=len(response.trace.unmatched),
        )
        return response.results


# ==============================================================================
# EXPORTS
# ==============================================================================

__all__ = ["FHIR_R4_RESOURCE_TYPES", "FHIRValidator"]
