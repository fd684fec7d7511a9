"""Unit tests for the typed Kargo resource records."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from pydantic import ValidationError

from kargo_publish.schemas.resources import ArtifactRef, Freight, Stage, Warehouse

REPO = "gitea.cnoe.localtest.me:8443/giteaadmin/backstage-app"


class TestArtifactRef:
    """Tests for ArtifactRef."""

    def test_str_is_reference(self) -> None:
        ref = ArtifactRef(repository=REPO, tag="v1.2.3")
        assert str(ref) == f"{REPO}:v1.2.3"

    def test_with_tag_keeps_repository(self) -> None:
        ref = ArtifactRef(repository=REPO, tag="v1.2.3").with_tag("latest")
        assert ref == ArtifactRef(repository=REPO, tag="latest")

    def test_empty_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ArtifactRef(repository="", tag="v1")
        with pytest.raises(ValidationError):
            ArtifactRef(repository=REPO, tag="")

    def test_frozen(self) -> None:
        ref = ArtifactRef(repository=REPO, tag="v1")
        with pytest.raises(ValidationError):
            ref.tag = "v2"  # type: ignore[misc]


class TestWarehouse:
    """Tests for Warehouse parsing and matching."""

    def test_subscribes_to_exact_repo(
        self, make_warehouse: Callable[..., dict[str, Any]]
    ) -> None:
        warehouse = Warehouse.from_resource(make_warehouse("w1", [REPO]))
        assert warehouse.name == "w1"
        assert warehouse.subscribes_to(REPO)

    @pytest.mark.parametrize(
        "other",
        [
            REPO + "/",
            REPO.upper(),
            "gitea.cnoe.localtest.me/giteaadmin/backstage-app",
            REPO + "-other",
        ],
    )
    def test_no_normalization(
        self, make_warehouse: Callable[..., dict[str, Any]], other: str
    ) -> None:
        warehouse = Warehouse.from_resource(make_warehouse("w1", [REPO]))
        assert not warehouse.subscribes_to(other)

    def test_non_image_subscriptions_ignored(self) -> None:
        obj = {
            "metadata": {"name": "w1", "namespace": "ns"},
            "spec": {
                "subscriptions": [
                    {"git": {"repoURL": REPO}},
                    {"chart": {"repoURL": "oci://charts"}},
                ]
            },
        }
        assert not Warehouse.from_resource(obj).subscribes_to(REPO)

    def test_missing_spec(self) -> None:
        warehouse = Warehouse.from_resource({"metadata": {"name": "w1"}})
        assert warehouse.subscriptions == ()
        assert warehouse.namespace == ""


class TestFreight:
    """Tests for Freight parsing and matching."""

    def test_contains_exact_pair(self, make_freight: Callable[..., dict[str, Any]]) -> None:
        freight = Freight.from_resource(
            make_freight("f1", [("other/repo", "v1"), (REPO, "dev-20240101-120000")])
        )
        assert freight.contains(ArtifactRef(repository=REPO, tag="dev-20240101-120000"))

    @pytest.mark.parametrize(
        "tag",
        [
            "dev-20240101-12000",
            "dev-20240101-1200000",
            "dev-20240101-120000-abc",
            "DEV-20240101-120000",
        ],
    )
    def test_near_miss_tags_never_match(
        self, make_freight: Callable[..., dict[str, Any]], tag: str
    ) -> None:
        freight = Freight.from_resource(make_freight("f1", [(REPO, "dev-20240101-120000")]))
        assert not freight.contains(ArtifactRef(repository=REPO, tag=tag))

    def test_same_tag_other_repo_does_not_match(
        self, make_freight: Callable[..., dict[str, Any]]
    ) -> None:
        freight = Freight.from_resource(make_freight("f1", [("ghcr.io/acme/backstage-app", "v1")]))
        assert not freight.contains(ArtifactRef(repository=REPO, tag="v1"))

    def test_incomplete_entries_skipped(self) -> None:
        obj = {
            "metadata": {"name": "f1", "namespace": "ns"},
            "images": [{"repoURL": REPO}, {"tag": "v1"}, "junk", {"repoURL": REPO, "tag": "v2"}],
        }
        freight = Freight.from_resource(obj)
        assert freight.artifacts == (ArtifactRef(repository=REPO, tag="v2"),)


class TestStage:
    """Tests for the stage convergence predicate."""

    def test_converged(self, make_stage: Callable[..., dict[str, Any]]) -> None:
        stage = Stage.from_resource(make_stage(freight="f1"))
        assert stage.is_converged_on("f1")
        assert stage.pending_checks("f1") == []

    @pytest.mark.parametrize(
        ("overrides", "pending_prefix"),
        [
            ({"freight": "f0"}, "freight="),
            ({"freight": None}, "freight="),
            ({"ready": "False"}, "Ready="),
            ({"ready": None}, "Ready="),
            ({"health": "Progressing"}, "health="),
            ({"health": None}, "health="),
            ({"verified": "Unknown"}, "Verified="),
            ({"verified": None}, "Verified="),
        ],
    )
    def test_any_single_flip_breaks_convergence(
        self,
        make_stage: Callable[..., dict[str, Any]],
        overrides: dict[str, Any],
        pending_prefix: str,
    ) -> None:
        stage = Stage.from_resource(make_stage(**{"freight": "f1", **overrides}))
        assert not stage.is_converged_on("f1")
        pending = stage.pending_checks("f1")
        assert len(pending) == 1
        assert pending[0].startswith(pending_prefix)

    def test_first_condition_of_type_wins(
        self, make_stage: Callable[..., dict[str, Any]]
    ) -> None:
        obj = make_stage(freight="f1")
        obj["status"]["conditions"].append({"type": "Ready", "status": "False"})
        assert Stage.from_resource(obj).conditions["Ready"] == "True"

    def test_raw_kept_for_diagnostics(self, make_stage: Callable[..., dict[str, Any]]) -> None:
        obj = make_stage()
        assert Stage.from_resource(obj).raw == obj

    def test_empty_status(self) -> None:
        stage = Stage.from_resource({"metadata": {"name": "s", "namespace": "ns"}})
        assert stage.current_freight_summary == ""
        assert len(stage.pending_checks("f1")) == 4
