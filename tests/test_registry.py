"""
Registration, replacement and removal of modules.
"""

import pytest

from keel import (
    Container,
    ContainerError,
    ModuleDefinition,
    MutationError,
    RegistrationError,
)
from keel.module import CallableFactory, ValueFactory, positional_arity
from keel.testing import Service


# ============================================================================
# register / register_complex
# ============================================================================

class TestRegister:

    def test_register_value(self, container):
        container.register("config", {"dsn": "sqlite://"})
        assert "config" in container
        assert container.is_registered("config")
        assert len(container) == 1

    def test_register_twice_fails(self, container):
        container.register("a", 1)
        with pytest.raises(RegistrationError) as exc_info:
            container.register("a", 2)

        assert exc_info.value.code == "DUPLICATE_MODULE"
        assert exc_info.value.module == "a"
        assert "already been registered" in str(exc_info.value)
        assert container.get_instance("a") == 1

    def test_registration_error_is_container_error(self, container):
        container.register("a", 1)
        with pytest.raises(ContainerError):
            container.register("a", 1)

    def test_arity_mismatch_fails_immediately(self, container):
        container.register("x", 1)
        with pytest.raises(RegistrationError) as exc_info:
            container.register("y", lambda: object(), dependencies=["x"])

        assert exc_info.value.code == "ARITY_MISMATCH"
        assert exc_info.value.metadata == {"arity": 0, "dependencies": 1}
        assert "y" not in container

    def test_too_many_parameters_fails(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register("y", lambda a, b: (a, b), dependencies=["a"])
        assert exc_info.value.code == "ARITY_MISMATCH"

    def test_defaulted_parameters_are_optional(self, container):
        container.register("a", 1)
        container.register("b", lambda a, scale=10: a * scale, dependencies=["a"])
        assert container.get_instance("b") == 10

    def test_variadic_factory_accepts_any_count(self, container):
        container.register("a", 1)
        container.register("b", 2)
        container.register("sum", lambda *values: sum(values), dependencies=["a", "b"])
        assert container.get_instance("sum") == 3

    def test_keyword_only_parameter_rejected(self, container):
        def build(*, config):
            return config

        with pytest.raises(RegistrationError) as exc_info:
            container.register("b", build)
        assert exc_info.value.code == "UNINSPECTABLE_FACTORY"

    def test_builtin_type_without_dependencies(self, container):
        container.register("registry", dict)
        container.register("tags", set)

        assert container.get_instance("registry") == {}
        assert container.get_instance("tags") == set()
        assert container.get_instance("registry") is container.get_instance("registry")

    def test_class_factory_arity(self, container):
        container.register("a", 1)
        container.register("svc", Service, dependencies=["a"])
        assert container.get_instance("svc").dependencies == (1,)

    def test_value_with_dependencies_fails(self, container):
        container.register("a", 1)
        with pytest.raises(RegistrationError) as exc_info:
            container.register("b", {"v": 1}, dependencies=["a"])
        assert exc_info.value.code == "VALUE_WITH_DEPENDENCIES"

    def test_duplicate_dependency_fails(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register("b", lambda x, y: None, dependencies=["a", "a"])
        assert exc_info.value.code == "DUPLICATE_DEPENDENCY"
        assert exc_info.value.metadata["duplicates"] == ["a"]

    def test_each_duplicate_reported_once(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register("b", lambda *deps: deps, dependencies=["a", "c", "a", "c", "a"])
        assert exc_info.value.metadata["duplicates"] == ["a", "c"]

    def test_none_factory_counts_as_missing(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register("a", None)
        assert exc_info.value.code == "MISSING_PROPERTY"
        assert "register()" in str(exc_info.value)

    def test_dependencies_must_not_be_string(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register("b", lambda a: a, dependencies="a")
        assert exc_info.value.code == "INVALID_DEPENDENCIES"

    def test_name_must_be_string(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register(42, 1)
        assert exc_info.value.code == "INVALID_NAME"

    def test_register_complex_mapping(self, container):
        container.register_complex({
            "name": "svc",
            "factory": Service,
            "properties": {"startable": True},
        })
        view = container.filtered_modules({"name": "svc"})[0]
        assert view.startable is True
        assert view.dependencies == ()

    def test_register_complex_definition(self, container):
        container.register("a", 1)
        container.register_complex(ModuleDefinition(
            name="b",
            factory=lambda a: a + 1,
            dependencies=("a",),
        ))
        assert container.get_instance("b") == 2

    def test_register_complex_missing_name(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register_complex({"factory": 1})

        err = exc_info.value
        assert err.code == "MISSING_PROPERTY"
        assert err.metadata == {"property": "name"}
        assert "register_complex()" in err.message

    def test_register_complex_missing_factory(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register_complex({"name": "a"})
        assert exc_info.value.metadata == {"property": "factory"}

    def test_register_complex_rejects_non_mapping(self, container):
        with pytest.raises(RegistrationError) as exc_info:
            container.register_complex(["a", 1])
        assert exc_info.value.code == "INVALID_DEFINITION"

    def test_falsy_values_are_registered(self, container):
        container.register("zero", 0)
        container.register("empty", "")
        assert container.get_instance("zero") == 0
        assert container.get_instance("empty") == ""


# ============================================================================
# replace / clear / reset
# ============================================================================

class TestMutations:

    def test_replace_uninstantiated(self, container):
        container.register("a", 1)
        container.replace("a", 2)
        assert container.get_instance("a") == 2

    def test_replace_unknown_registers(self, container):
        container.replace("a", 1)
        assert container.names() == ["a"]

    def test_replace_instantiated_fails(self, container):
        container.register("a", 1)
        container.get_instance("a")

        with pytest.raises(MutationError) as exc_info:
            container.replace("a", 2)
        assert exc_info.value.code == "MODULE_INSTANTIATED"
        assert container.get_instance("a") == 1

    def test_replace_complex(self, container):
        container.register("a", 1)
        container.register("b", 5)
        container.replace_complex({
            "name": "b",
            "factory": lambda a: a * 3,
            "dependencies": ["a"],
        })
        assert container.get_instance("b") == 3

    def test_replace_moves_module_to_end(self, container):
        container.register("a", 1)
        container.register("b", 2)
        container.replace("a", 3)
        assert container.names() == ["b", "a"]

    def test_replace_with_invalid_definition_keeps_previous(self, container):
        container.register("a", 1)
        with pytest.raises(RegistrationError):
            container.replace_complex({"name": "a"})
        assert container.get_instance("a") == 1

    def test_clear_instantiated_fails(self, container):
        container.register("a", 1)
        container.get_instance("a")

        with pytest.raises(MutationError) as exc_info:
            container.clear("a")
        assert "already instantiated" in str(exc_info.value)
        assert "a" in container

    def test_clear_unknown_is_noop(self, container):
        container.clear("missing")
        assert len(container) == 0

    def test_clear_removes_module(self, container):
        container.register("a", 1)
        container.clear("a")
        assert "a" not in container

    def test_reset_empties_registry(self, container):
        container.register("a", 1)
        container.register("b", lambda a: a, dependencies=["a"])
        container.get_instance("b")

        container.reset()
        assert len(container) == 0
        assert container.names() == []

    @pytest.mark.asyncio
    async def test_reset_fails_while_started(self, container):
        container.register("svc", Service, {"startable": True})
        await container.start("svc")

        with pytest.raises(MutationError) as exc_info:
            container.reset()
        assert exc_info.value.code == "MODULES_RUNNING"
        assert exc_info.value.metadata == {"started": ["svc"]}
        assert "svc" in container

        await container.stop("svc")
        container.reset()
        assert len(container) == 0


# ============================================================================
# Factory variants
# ============================================================================

class TestFactories:

    def test_positional_arity(self):
        assert positional_arity(lambda: None) == (0, False)
        assert positional_arity(lambda a, b=1: None) == (1, False)
        assert positional_arity(lambda a, *rest: None) == (1, True)

    def test_value_factory(self):
        factory = ValueFactory({"v": 1})
        assert factory() == {"v": 1}
        assert factory.accepts(0)
        assert not factory.accepts(1)

    def test_callable_factory(self):
        factory = CallableFactory.of(lambda a, b: a + b)
        assert factory.arity == 2
        assert factory(1, 2) == 3
        assert factory.accepts(2)
        assert not factory.accepts(3)

    def test_definition_is_value(self):
        assert ModuleDefinition("a", 1).is_value
        assert not ModuleDefinition("a", lambda: 1).is_value

    def test_definition_to_dict(self):
        definition = ModuleDefinition("a", 1, {"startable": False}, ("b",))
        assert definition.to_dict() == {
            "name": "a",
            "factory": "value:int",
            "properties": {"startable": False},
            "dependencies": ["b"],
        }


def test_separate_containers_do_not_share_state():
    first = Container()
    second = Container()
    first.register("a", 1)
    assert "a" not in second
