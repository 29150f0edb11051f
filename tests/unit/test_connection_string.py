# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------

import pytest
import logging
from edge_twins_module.connection_string import ConnectionString

logging.basicConfig(level=logging.DEBUG)

EDGE_MODULE_CS = "HostName=my.host.name;GatewayHostName=mygateway;DeviceId=my-device;ModuleId=my-module;SharedAccessKey=Zm9vYmFy"
DEVICE_CS = "HostName=my.host.name;DeviceId=my-device;SharedAccessKeyName=mykeyname;SharedAccessKey=Zm9vYmFy"


@pytest.mark.describe("ConnectionString")
class TestConnectionString(object):
    @pytest.mark.it("Instantiates from a valid connection string")
    @pytest.mark.parametrize(
        "auth_details",
        [
            pytest.param("SharedAccessKey=Zm9vYmFy;", id="Shared Access Key"),
            pytest.param(
                "SharedAccessKey=Zm9vYmFy;SharedAccessKeyName=my-key-name;",
                id="Shared Access Key + Name",
            ),
            pytest.param("SharedAccessSignature=fake-sas-token", id="Shared Access Signature"),
            pytest.param("x509=True;", id="X509"),
        ],
    )
    @pytest.mark.parametrize(
        "iot_details",
        [
            pytest.param("HostName=my.host.name;DeviceId=my-device;", id="Standard Device"),
            pytest.param(
                "HostName=my.host.name;GatewayHostName=mygateway;DeviceId=my-device;",
                id="Edge Leaf Device",
            ),
            pytest.param(
                "HostName=my.host.name;DeviceId=my-device;ModuleId=my-module;", id="Standard Module"
            ),
            pytest.param(
                "HostName=my.host.name;GatewayHostName=mygateway;DeviceId=my-device;ModuleId=my-module;",
                id="Edge Module",
            ),
        ],
    )
    def test_instantiates_correctly_from_string(self, auth_details, iot_details):
        input_str = (iot_details + auth_details).strip(";")
        cs = ConnectionString(input_str)
        assert isinstance(cs, ConnectionString)

    @pytest.mark.it("Tolerates a trailing delimiter")
    def test_trailing_delimiter(self):
        cs = ConnectionString(DEVICE_CS + ";")
        assert cs["SharedAccessKey"] == "Zm9vYmFy"

    @pytest.mark.it("Raises ValueError on invalid string input during instantiation")
    @pytest.mark.parametrize(
        "input_string",
        [
            pytest.param("", id="Empty string"),
            pytest.param("garbage", id="Not a connection string"),
            pytest.param(
                "HostName=my.host.name;SharedAccessKey=Zm9vYmFy",
                id="Incomplete connection string (missing device identity)",
            ),
            pytest.param(
                "DeviceId=my-device;SharedAccessKey=Zm9vYmFy",
                id="Incomplete connection string (missing endpoint)",
            ),
            pytest.param(
                "HostName=my.host.name;DeviceId=my-device;",
                id="Incomplete connection string (missing auth)",
            ),
            pytest.param(
                "InvalidKey=my.host.name;SharedAccessKeyName=mykeyname;SharedAccessKey=Zm9vYmFy",
                id="Invalid key",
            ),
            pytest.param(
                "HostName=my.host.name;HostName=my.host.name;SharedAccessKey=mykeyname;SharedAccessKey=Zm9vYmFy",
                id="Duplicate key",
            ),
            pytest.param(
                "HostName=my.host.name;DeviceId=my-device;ModuleId=my-module;SharedAccessKey=mykeyname;x509=true",
                id="Mixed authentication scheme",
            ),
        ],
    )
    def test_raises_value_error_on_invalid_input(self, input_string):
        with pytest.raises(ValueError):
            ConnectionString(input_string)

    @pytest.mark.it("Raises TypeError on non-string input during instantiation")
    @pytest.mark.parametrize(
        "input_val",
        [
            pytest.param(2123, id="Integer"),
            pytest.param(None, id="None"),
            pytest.param(b"bytes", id="Bytes"),
            pytest.param(["a", "b"], id="List"),
        ],
    )
    def test_raises_type_error_on_non_string_input(self, input_val):
        with pytest.raises(TypeError):
            ConnectionString(input_val)

    @pytest.mark.it("Uses the input connection string as a string representation")
    def test_string_representation_of_object_is_the_input_string(self):
        cs = ConnectionString(DEVICE_CS)
        assert str(cs) == DEVICE_CS

    @pytest.mark.it("Does not include credentials in its repr")
    def test_repr_is_redacted(self):
        cs = ConnectionString(DEVICE_CS)
        assert "Zm9vYmFy" not in repr(cs)
        assert "my-device" in repr(cs)

    @pytest.mark.it("Supports indexing syntax to return the stored value for a given key")
    def test_indexing_key_returns_corresponding_value(self):
        cs = ConnectionString(DEVICE_CS)
        assert cs["HostName"] == "my.host.name"
        assert cs["SharedAccessKeyName"] == "mykeyname"
        assert cs["SharedAccessKey"] == "Zm9vYmFy"

    @pytest.mark.it("Raises KeyError if indexing on a key not contained in the ConnectionString")
    def test_indexing_key_raises_key_error_if_key_not_in_string(self):
        cs = ConnectionString(DEVICE_CS)
        with pytest.raises(KeyError):
            cs["SharedAccessSignature"]

    @pytest.mark.it(
        "Supports the 'in' operator for validating if a key is contained in the ConnectionString"
    )
    def test_item_in_string(self):
        cs = ConnectionString(DEVICE_CS)
        assert "SharedAccessKey" in cs
        assert "HostName" in cs
        assert "FakeKeyNotInTheString" not in cs

    @pytest.mark.it("Returns an optionally provided default value from .get() if the key is absent")
    def test_get_default(self):
        cs = ConnectionString(DEVICE_CS)
        assert cs.get("HostName") == "my.host.name"
        assert cs.get("ModuleId") is None
        assert cs.get("ModuleId", "defaultval") == "defaultval"


@pytest.mark.describe("ConnectionString - .redacted()")
class TestConnectionStringRedacted(object):
    @pytest.mark.it("Masks the SharedAccessKey value, and keeps every other value")
    def test_masks_shared_access_key(self):
        cs = ConnectionString(EDGE_MODULE_CS)
        assert cs.redacted() == (
            "HostName=my.host.name;GatewayHostName=mygateway;DeviceId=my-device;"
            "ModuleId=my-module;SharedAccessKey=<redacted>"
        )

    @pytest.mark.it("Masks the SharedAccessSignature value")
    def test_masks_shared_access_signature(self):
        cs = ConnectionString(
            "HostName=my.host.name;DeviceId=my-device;SharedAccessSignature=fake-sas-token"
        )
        assert "fake-sas-token" not in cs.redacted()
        assert "SharedAccessSignature=<redacted>" in cs.redacted()


@pytest.mark.describe("ConnectionString - Identity properties")
class TestConnectionStringIdentity(object):
    @pytest.mark.it("Identifies a module identity by its ModuleId")
    def test_module_identity(self):
        cs = ConnectionString(EDGE_MODULE_CS)
        assert cs.is_module
        assert cs.device_id == "my-device"
        assert cs.module_id == "my-module"
        assert cs.identity == "my-device/my-module"

    @pytest.mark.it("Identifies a device identity by the absence of a ModuleId")
    def test_device_identity(self):
        cs = ConnectionString(DEVICE_CS)
        assert not cs.is_module
        assert cs.module_id is None
        assert cs.identity == "my-device"

    @pytest.mark.it("Uses the GatewayHostName as the hostname, if present")
    def test_gateway_hostname(self):
        assert ConnectionString(EDGE_MODULE_CS).hostname == "mygateway"

    @pytest.mark.it("Uses the HostName as the hostname, if there is no GatewayHostName")
    def test_hostname(self):
        assert ConnectionString(DEVICE_CS).hostname == "my.host.name"

    @pytest.mark.it("Reports a connection through an edge gateway only if there is a GatewayHostName")
    def test_via_gateway(self):
        assert ConnectionString(EDGE_MODULE_CS).via_gateway
        assert not ConnectionString(DEVICE_CS).via_gateway
