import ipaddress
import typing

import pulumi
import pulumi_aws as aws

import homelab


class AwsVpc(pulumi.ComponentResource):
    """
    A single-AZ VPC with one public subnet routed through an internet gateway.
    """

    name: str
    cidr_block: ipaddress.IPv4Network
    subnet_cidr_block: ipaddress.IPv4Network
    availability_zone: str
    tags: dict[str, str]

    vpc: aws.ec2.Vpc
    internet_gateway: aws.ec2.InternetGateway
    subnet: aws.ec2.Subnet
    route_table: aws.ec2.RouteTable

    def __init__(
        self,
        name: str,
        tags: dict[str, str],
        cidr_block: str = homelab.VPC_CIDR,
        subnet_cidr_block: str = homelab.PUBLIC_SUBNET_CIDR,
        availability_zone: str = homelab.AWS_AVAILABILITY_ZONE,
        *args,
        **kwargs,
    ):
        """
        :param name: the name prefix of the VPC resources
        :param tags: the tags to apply to all the resources
        :param cidr_block: the CIDR block of the VPC
        :param subnet_cidr_block: the CIDR block of the public subnet, must sit inside cidr_block
        :param availability_zone: the availability zone name (us-east-1a, not use1-az4) of the subnet
        """
        super().__init__(f"homelab:{self.__class__.__name__}", name, *args, **kwargs)

        self.name = name
        self.tags = tags
        self.availability_zone = availability_zone
        self.cidr_block = typing.cast(ipaddress.IPv4Network, ipaddress.ip_network(cidr_block))
        self.subnet_cidr_block = typing.cast(ipaddress.IPv4Network, ipaddress.ip_network(subnet_cidr_block))

        if not self.subnet_cidr_block.subnet_of(self.cidr_block):
            msg = f"Subnet {self.subnet_cidr_block} is not inside VPC {self.cidr_block}"
            pulumi.error(msg)
            raise ValueError(msg)

        self._define_vpc()
        self._define_public_subnet()

        self.register_outputs(
            {
                "vpc_id": self.vpc.id,
                "subnet_id": self.subnet.id,
            }
        )

    def _define_vpc(self):
        self.vpc = aws.ec2.Vpc(
            f"{self.name}-vpc",
            cidr_block=str(self.cidr_block),
            enable_dns_support=True,
            enable_dns_hostnames=True,
            tags=homelab.name_tags(self.tags, f"{self.name}-vpc"),
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.internet_gateway = aws.ec2.InternetGateway(
            f"{self.name}-igw",
            vpc_id=self.vpc.id,
            tags=homelab.name_tags(self.tags, f"{self.name}-igw"),
            opts=pulumi.ResourceOptions(parent=self.vpc),
        )

    def _define_public_subnet(self):
        self.subnet = aws.ec2.Subnet(
            f"{self.name}-public",
            vpc_id=self.vpc.id,
            cidr_block=str(self.subnet_cidr_block),
            availability_zone=self.availability_zone,
            map_public_ip_on_launch=True,
            tags=homelab.name_tags(self.tags, f"{self.name}-public"),
            opts=pulumi.ResourceOptions(parent=self.vpc),
        )

        self.route_table = aws.ec2.RouteTable(
            f"{self.name}-rt",
            vpc_id=self.vpc.id,
            routes=[
                aws.ec2.RouteTableRouteArgs(
                    cidr_block=homelab.OPEN_CIDR,
                    gateway_id=self.internet_gateway.id,
                )
            ],
            tags=homelab.name_tags(self.tags, f"{self.name}-rt"),
            opts=pulumi.ResourceOptions(parent=self.vpc),
        )

        aws.ec2.RouteTableAssociation(
            f"{self.name}-rt-assoc",
            subnet_id=self.subnet.id,
            route_table_id=self.route_table.id,
            opts=pulumi.ResourceOptions(parent=self.route_table),
        )
