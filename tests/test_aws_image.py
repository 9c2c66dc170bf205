import boto3
import pytest
from botocore.stub import Stubber

from ami_publisher.aws_provider.image import block_device_mappings, copy_image, register_image, tag_resource, wait_image_available


@pytest.fixture
def ec2_client():
    return boto3.client(
        "ec2",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_block_device_layout():
    mappings = block_device_mappings("snap-1", 6)
    assert mappings[0] == {
        "DeviceName": "/dev/xvda",
        "Ebs": {"SnapshotId": "snap-1", "VolumeSize": 6, "VolumeType": "gp3", "DeleteOnTermination": True},
    }
    assert [(m["DeviceName"], m["VirtualName"]) for m in mappings[1:]] == [
        ("/dev/sdb", "ephemeral0"),
        ("/dev/sdc", "ephemeral1"),
        ("/dev/sdd", "ephemeral2"),
        ("/dev/sde", "ephemeral3"),
    ]


def test_register_image_request(ec2_client):
    expected = {
        "Name": "NixOS-beta-x86_64-linux",
        "Description": "NixOS beta x86_64-linux",
        "Architecture": "x86_64",
        "EnaSupport": True,
        "VirtualizationType": "hvm",
        "RootDeviceName": "/dev/xvda",
        "BlockDeviceMappings": block_device_mappings("snap-1", 5),
    }
    with Stubber(ec2_client) as stubber:
        stubber.add_response("register_image", {"ImageId": "ami-123"}, expected)
        image_id = register_image(
            ec2_client,
            name="NixOS-beta-x86_64-linux",
            description="NixOS beta x86_64-linux",
            architecture="x86_64",
            snapshot_id="snap-1",
            volume_gbs=5,
        )
    assert image_id == "ami-123"


def test_copy_and_tag(ec2_client):
    with Stubber(ec2_client) as stubber:
        stubber.add_response(
            "copy_image",
            {"ImageId": "ami-copy"},
            {"Name": "n", "SourceImageId": "ami-123", "SourceRegion": "us-east-1", "Description": "d"},
        )
        stubber.add_response(
            "create_tags",
            {},
            {"Resources": ["ami-copy"], "Tags": [{"Key": "NixOSName", "Value": "v"}]},
        )
        image_id = copy_image(ec2_client, name="n", source_image_id="ami-123", source_region="us-east-1", description="d")
        tag_resource(ec2_client, image_id, "NixOSName", "v")
        stubber.assert_no_pending_responses()
    assert image_id == "ami-copy"


def test_wait_image_available(ec2_client):
    with Stubber(ec2_client) as stubber:
        stubber.add_response("describe_images", {"Images": [{"ImageId": "ami-1", "State": "pending"}]}, {"ImageIds": ["ami-1"]})
        stubber.add_response("describe_images", {"Images": [{"ImageId": "ami-1", "State": "available"}]}, {"ImageIds": ["ami-1"]})
        wait_image_available(ec2_client, "ami-1", poll=0, timeout=5)
        stubber.assert_no_pending_responses()


def test_wait_image_failed(ec2_client):
    with Stubber(ec2_client) as stubber:
        stubber.add_response(
            "describe_images",
            {"Images": [{"ImageId": "ami-1", "State": "failed", "StateReason": {"Code": "x", "Message": "copy aborted"}}]},
            {"ImageIds": ["ami-1"]},
        )
        with pytest.raises(RuntimeError) as exc_info:
            wait_image_available(ec2_client, "ami-1", poll=0, timeout=5)
    assert "copy aborted" in str(exc_info.value)
