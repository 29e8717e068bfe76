"""
Tests del modelo de recursos: validación, normalización y carga del estado deseado.
"""

from pathlib import Path

import pytest

from orbita.core.errors import ConfigError, ValidationError
from orbita.core.resources import load_desired, normalize_attributes, validate_name, validate_specs
from orbita.core.resources.models import AppliedState, Ref, ResourceKind
from tests.helpers import make_spec


def write(path: Path, content: str) -> Path:
    path.write_text(content)
    return path


class TestValidation:
    """Reglas de consistencia interna de los ResourceSpecs."""

    def test_scenario_is_valid(self, scenario_specs):
        validate_specs(scenario_specs)

    def test_missing_required_attribute_names_resource_and_attribute(self):
        specs = [
            make_spec("v1", "vpc", cidr_block="10.0.0.0/16"),
            make_spec("s1", "subnet", vpc=Ref("v1"), availability_zone="us-east-1a"),
        ]
        with pytest.raises(ValidationError) as exc:
            validate_specs(specs)
        assert exc.value.resource == "s1"
        assert exc.value.attribute == "cidr_block"
        assert str(exc.value).startswith("s1.cidr_block:")

    def test_reference_to_unknown_resource(self):
        specs = [make_spec("s1", "subnet", vpc=Ref("nope"), cidr_block="10.0.1.0/24", availability_zone="a")]
        with pytest.raises(ValidationError) as exc:
            validate_specs(specs)
        assert exc.value.attribute == "vpc"
        assert "nope" in str(exc.value)

    def test_reference_to_wrong_kind(self, scenario_specs):
        bad = make_spec("alb2", "load_balancer", subnets=[Ref("v1")], security_groups=[Ref("sg1")])
        with pytest.raises(ValidationError) as exc:
            validate_specs(scenario_specs + [bad])
        assert exc.value.resource == "alb2"
        assert exc.value.attribute == "subnets"

    def test_bool_is_not_an_integer(self, scenario_specs):
        bad = make_spec(
            "alb2", "load_balancer",
            subnets=[Ref("s1")], security_groups=[Ref("sg1")], idle_timeout=True,
        )
        with pytest.raises(ValidationError) as exc:
            validate_specs(scenario_specs + [bad])
        assert exc.value.attribute == "idle_timeout"

    def test_unknown_attribute(self):
        with pytest.raises(ValidationError) as exc:
            validate_specs([make_spec("v1", "vpc", cidr_block="10.0.0.0/16", colour="blue")])
        assert exc.value.attribute == "colour"

    def test_duplicate_names(self):
        specs = [make_spec("v1", "vpc", cidr_block="10.0.0.0/16"), make_spec("v1", "vpc", cidr_block="10.1.0.0/16")]
        with pytest.raises(ValidationError, match="duplicado"):
            validate_specs(specs)

    def test_explicit_dependency_must_exist(self):
        spec = make_spec("v1", "vpc", depends_on=["ghost"], cidr_block="10.0.0.0/16")
        with pytest.raises(ValidationError) as exc:
            validate_specs([spec])
        assert exc.value.attribute == "depends_on"

    def test_self_dependency(self):
        spec = make_spec("v1", "vpc", depends_on=["v1"], cidr_block="10.0.0.0/16")
        with pytest.raises(ValidationError):
            validate_specs([spec])

    @pytest.mark.parametrize("name", ["", "../etc", "a b", "-lead", "x/y"])
    def test_unsafe_names(self, name):
        with pytest.raises(ValidationError):
            validate_name(name)

    def test_alarm_targets_any_kind(self, scenario_specs):
        alarm = make_spec(
            "alb1-5xx", "alarm",
            metric_name="HTTPCode_ELB_5XX_Count", namespace="AWS/ApplicationELB",
            threshold=10, comparison="GreaterThanThreshold", target=Ref("alb1"),
        )
        validate_specs(scenario_specs + [alarm])
        assert alarm.dependency_names() == {"alb1"}


class TestNormalization:
    """Forma canónica usada por el Diff Engine."""

    def test_defaults_are_applied(self):
        attrs = normalize_attributes(ResourceKind.VPC, {"cidr_block": "10.0.0.0/16"})
        assert attrs["enable_dns_support"] is True
        assert attrs["tags"] == {}

    def test_sets_become_frozensets(self):
        attrs = normalize_attributes(
            ResourceKind.SECURITY_GROUP,
            {"vpc": Ref("v1"), "description": "web", "ingress": ["b", "a", "a"]},
        )
        assert attrs["ingress"] == frozenset({"a", "b"})
        assert attrs["egress"] == frozenset({"all:0:0.0.0.0/0"})

    def test_none_values_are_dropped(self):
        attrs = normalize_attributes(ResourceKind.LISTENER, {"certificate_arn": None, "port": 80})
        assert "certificate_arn" not in attrs

    def test_default_values_are_not_shared(self):
        first = normalize_attributes(ResourceKind.LOG_GROUP, {})
        first["tags"]["team"] = "web"
        second = normalize_attributes(ResourceKind.LOG_GROUP, {})
        assert second["tags"] == {}

    def test_applied_record_keeps_refs_and_sets(self):
        state = AppliedState(
            name="sg1",
            kind=ResourceKind.SECURITY_GROUP,
            attributes={"vpc": Ref("v1"), "ingress": frozenset({"tcp:80:0.0.0.0/0"})},
            provider_id="sg-1",
        )
        record = state.to_record()
        assert record["attributes"]["vpc"] == {"$ref": "v1"}
        assert AppliedState.from_record(record).attributes == state.attributes


class TestLoader:
    """Carga de YAML: !ref, {ref: ...}, directorios y errores."""

    DOCUMENT = """
version: 1
resources:
  - name: v1
    kind: vpc
    attributes:
      cidr_block: 10.0.0.0/16
  - name: s1
    kind: subnet
    attributes:
      vpc: !ref v1
      cidr_block: 10.0.1.0/24
      availability_zone: us-east-1a
  - name: sg1
    kind: security_group
    depends_on: [s1]
    attributes:
      vpc: {ref: v1}
      description: web
"""

    def test_load_file_with_refs(self, tmp_path):
        specs = load_desired(write(tmp_path / "infra.yaml", self.DOCUMENT))
        assert sorted(specs) == ["s1", "sg1", "v1"]
        assert specs["s1"].attributes["vpc"] == Ref("v1")
        assert specs["sg1"].attributes["vpc"] == Ref("v1")
        assert specs["sg1"].dependency_names() == {"s1", "v1"}
        validate_specs(specs.values())

    def test_resources_as_mapping(self, tmp_path):
        doc = """
resources:
  v1:
    kind: vpc
    attributes: {cidr_block: 10.0.0.0/16}
"""
        specs = load_desired(write(tmp_path / "infra.yaml", doc))
        assert specs["v1"].kind == ResourceKind.VPC

    def test_load_directory(self, tmp_path):
        write(tmp_path / "network.yaml", "resources:\n  - {name: v1, kind: vpc, attributes: {cidr_block: 10.0.0.0/16}}\n")
        write(tmp_path / "storage.yml", "resources:\n  - {name: b1, kind: s3_bucket, attributes: {bucket_name: assets}}\n")
        specs = load_desired(tmp_path)
        assert sorted(specs) == ["b1", "v1"]

    def test_duplicate_across_files(self, tmp_path):
        write(tmp_path / "a.yaml", "resources:\n  - {name: v1, kind: vpc, attributes: {cidr_block: 10.0.0.0/16}}\n")
        write(tmp_path / "b.yaml", "resources:\n  - {name: v1, kind: vpc, attributes: {cidr_block: 10.1.0.0/16}}\n")
        with pytest.raises(ValidationError, match="duplicado"):
            load_desired(tmp_path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_desired(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_desired(write(tmp_path / "infra.yaml", "resources: [unclosed"))

    def test_unsupported_version(self, tmp_path):
        with pytest.raises(ConfigError, match="versión"):
            load_desired(write(tmp_path / "infra.yaml", "version: 7\nresources: []\n"))

    def test_unknown_kind(self, tmp_path):
        doc = "resources:\n  - {name: x1, kind: mainframe}\n"
        with pytest.raises(ValidationError) as exc:
            load_desired(write(tmp_path / "infra.yaml", doc))
        assert exc.value.resource == "x1"
        assert exc.value.attribute == "kind"

    def test_unknown_entry_key(self, tmp_path):
        doc = "resources:\n  - {name: v1, kind: vpc, attrs: {}}\n"
        with pytest.raises(ValidationError, match="attrs"):
            load_desired(write(tmp_path / "infra.yaml", doc))
