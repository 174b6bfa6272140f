import argparse
import asyncio
import sys
import traceback

from dotenv import load_dotenv
from loguru import logger

from .authenticator import PublicKeyAuthenticator
from .aws_provider.client_factory import AwsClient
from .crypto import SshKeyPair
from .ec2_provisioner import Ec2Provisioner
from .host_spec import HostSpec, save_hosts
from .launcher import cleanup_instances, launch_node, release_nodes
from .provision_config import ProvisionerConfig, load_provisioner_config
from .utils.logger import configure_logger


def provision(config: ProvisionerConfig, hosts_file: str, wait_ssh: bool) -> int:
    key_pair = SshKeyPair.load_or_generate(config.ssh_key_path)
    authenticator = PublicKeyAuthenticator(config.user, key_pair)
    client = AwsClient.new(config)
    provisioner = Ec2Provisioner(config, client, key_pair, authenticator)

    node = launch_node(provisioner, client, config)

    if wait_ssh:
        try:
            asyncio.run(authenticator.wait_ready(node.public_ip or "", timeout=config.launch_timeout))
        except TimeoutError:
            logger.error(f"SSH not ready on {node.public_ip}, releasing {node.provider_id}")
            release_nodes(client, [node])
            return 1

    save_hosts([HostSpec(
        ip=node.public_ip or "",
        ssh_user=authenticator.user,
        ssh_key_path=key_pair.private_key_path,
        provider="aws",
        region=node.region_id,
        instance_id=node.provider_id,
    )], hosts_file)
    logger.success(f"Saved host {node.public_ip} to {hosts_file}, inbound ports: {list(provisioner.get_available_inbound_ports())}")
    return 0


def cleanup(config: ProvisionerConfig, workspace_only: bool, yes: bool) -> int:
    if not yes:
        scope = "from this workspace" if workspace_only else "with the common tag"
        answer = input(f"Terminate all agent instances {scope} in {config.region}? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            logger.info("Aborted")
            return 1

    cleanup_instances(AwsClient.new(config), config.region, workspace_only=workspace_only)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="agent_provisioner", description="Provision EC2 hosts for remote test agents")
    parser.add_argument("-c", "--config", type=str, default="provisioner.toml", help="Provisioner configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    provision_parser = subparsers.add_parser("provision", help="Launch one agent host")
    provision_parser.add_argument("-o", "--output-json", type=str, default="hosts.json", help="Path to write the host record")
    provision_parser.add_argument("--wait-ssh", action="store_true", help="Wait until the host accepts SSH logins")

    cleanup_parser = subparsers.add_parser("cleanup", help="Terminate agent hosts")
    cleanup_parser.add_argument("--workspace-only", action="store_true", help="Only hosts tagged from the current working directory")
    cleanup_parser.add_argument("-y", "--yes", action="store_true", help="Assume yes to confirmation prompt and proceed")

    args = parser.parse_args(argv)

    load_dotenv()
    configure_logger("DEBUG" if args.verbose else "INFO")

    try:
        config = load_provisioner_config(args.config)
        if args.command == "provision":
            return provision(config, args.output_json, args.wait_ssh)
        return cleanup(config, args.workspace_only, args.yes)
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        logger.debug(traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
