"""Built-in token standard profiles.

Published profiles are never edited in place: a change ships as a new
version and the previous one is kept (inactive) so evidence recorded against
it can still be interpreted.
"""

from __future__ import annotations

from app.compliance.standards import (
    CrossFieldRule,
    FieldRule,
    FieldType,
    RuleSeverity,
    StandardProfile,
    TokenStandard,
)

ALGORAND_NETWORKS = frozenset(
    {
        "mainnet",
        "testnet",
        "betanet",
        "voimain-v1.0",
        "voitest-v1",
        "sandbox-v1",
        "aramidmain-v1.0",
        "aramidtest-v1",
    }
)
EVM_NETWORKS = frozenset({"base", "ethereum", "polygon", "arbitrum", "optimism"})

MICA_FLAG = "MICA"
US_REG_D_FLAG = "US_REG_D"

HEX_COLOR_PATTERN = r"^[0-9A-Fa-f]{6}$"
ALGORAND_ADDRESS_PATTERN = r"^[A-Z2-7]{58}$"

# Jurisdiction-gated disclosures shared by every profile.
JURISDICTION_FIELDS: tuple[FieldRule, ...] = (
    FieldRule(
        name="whitepaper_url",
        type=FieldType.URI,
        description="Crypto-asset white paper required for MiCA offerings",
        active_when=frozenset({MICA_FLAG}),
    ),
    FieldRule(
        name="accredited_only",
        type=FieldType.BOOL,
        description="Offering restricted to accredited investors (Reg D)",
        active_when=frozenset({US_REG_D_FLAG}),
    ),
)

NETWORK_RULE = CrossFieldRule(name="network_supported", check="network_supported")


def _asa_v1() -> StandardProfile:
    return StandardProfile(
        standard=TokenStandard.ASA,
        version="1.0.0",
        description="Algorand Standard Asset - native fungible asset",
        required_fields=(
            FieldRule(name="name", type=FieldType.STRING, max_length=32, aliases=("asset_name",)),
            FieldRule(
                name="unit_name",
                type=FieldType.STRING,
                max_length=8,
                aliases=("symbol", "unitName"),
            ),
            FieldRule(name="total", type=FieldType.INT, min_value=1, aliases=("total_supply",)),
            *JURISDICTION_FIELDS,
        ),
        optional_fields=(
            FieldRule(name="decimals", type=FieldType.INT, min_value=0, max_value=19),
            FieldRule(name="url", type=FieldType.URI, max_length=96),
            FieldRule(
                name="metadata_hash",
                type=FieldType.STRING,
                max_length=64,
                severity=RuleSeverity.WARNING,
            ),
            FieldRule(name="description", type=FieldType.STRING, max_length=1000),
        ),
        cross_field_rules=(
            CrossFieldRule(
                name="symbol_length",
                check="symbol_length",
                params=(("max_length", 8),),
            ),
            NETWORK_RULE,
        ),
        allowed_networks=ALGORAND_NETWORKS,
        specification_url="https://developer.algorand.org/docs/get-details/asa/",
    )


def _arc3_v1() -> StandardProfile:
    return StandardProfile(
        standard=TokenStandard.ARC3,
        version="1.0.0",
        description="ARC-3 rich metadata (superseded: metadata URL not required)",
        required_fields=(
            FieldRule(name="name", type=FieldType.STRING, max_length=256),
            *JURISDICTION_FIELDS,
        ),
        optional_fields=(
            FieldRule(name="decimals", type=FieldType.INT, min_value=0, max_value=19),
            FieldRule(name="description", type=FieldType.STRING, max_length=1000),
            FieldRule(name="image", type=FieldType.URI),
            FieldRule(
                name="image_mimetype",
                type=FieldType.STRING,
                pattern=r"^image/.*",
                severity=RuleSeverity.WARNING,
            ),
            FieldRule(name="background_color", type=FieldType.STRING, pattern=HEX_COLOR_PATTERN),
            FieldRule(name="external_url", type=FieldType.URI),
        ),
        cross_field_rules=(NETWORK_RULE,),
        allowed_networks=ALGORAND_NETWORKS,
        active=False,
        specification_url="https://github.com/algorandfoundation/ARCs/blob/main/ARCs/arc-0003.md",
    )


def _arc3_v1_1() -> StandardProfile:
    return StandardProfile(
        standard=TokenStandard.ARC3,
        version="1.1.0",
        description="ARC-3 rich metadata standard for NFTs and fungible tokens",
        required_fields=(
            FieldRule(
                name="name",
                type=FieldType.STRING,
                max_length=256,
                description="Identifies the asset the token represents",
            ),
            FieldRule(
                name="url",
                type=FieldType.URI,
                description="Metadata JSON location",
                aliases=("metadata_url",),
            ),
            *JURISDICTION_FIELDS,
        ),
        optional_fields=(
            FieldRule(name="decimals", type=FieldType.INT, min_value=0, max_value=19),
            FieldRule(name="description", type=FieldType.STRING, max_length=1000),
            FieldRule(name="image", type=FieldType.URI),
            FieldRule(
                name="image_integrity",
                type=FieldType.STRING,
                pattern=r"^sha256-[A-Za-z0-9+/=]+$",
            ),
            FieldRule(
                name="image_mimetype",
                type=FieldType.STRING,
                pattern=r"^image/.*",
                severity=RuleSeverity.WARNING,
            ),
            FieldRule(name="background_color", type=FieldType.STRING, pattern=HEX_COLOR_PATTERN),
            FieldRule(name="external_url", type=FieldType.URI),
            FieldRule(name="animation_url", type=FieldType.URI),
        ),
        cross_field_rules=(
            CrossFieldRule(
                name="image_mimetype_requires_image",
                check="requires_field",
                severity=RuleSeverity.WARNING,
                params=(("field", "image_mimetype"), ("requires", "image")),
            ),
            CrossFieldRule(
                name="metadata_url_scheme",
                check="url_scheme",
                severity=RuleSeverity.WARNING,
                params=(("field", "url"), ("schemes", "ipfs,https")),
            ),
            NETWORK_RULE,
        ),
        allowed_networks=ALGORAND_NETWORKS,
        specification_url="https://github.com/algorandfoundation/ARCs/blob/main/ARCs/arc-0003.md",
    )


def _arc19_v1() -> StandardProfile:
    return StandardProfile(
        standard=TokenStandard.ARC19,
        version="1.0.0",
        description="ARC-19 templated IPFS metadata via reserve address",
        required_fields=(
            FieldRule(name="name", type=FieldType.STRING, max_length=32),
            FieldRule(name="unit_name", type=FieldType.STRING, max_length=8, aliases=("symbol",)),
            FieldRule(
                name="url",
                type=FieldType.STRING,
                max_length=96,
                pattern=r"^template-ipfs://\{ipfscid:[01]:[a-z0-9-]+:reserve:sha2-256\}.*$",
            ),
            *JURISDICTION_FIELDS,
        ),
        optional_fields=(
            FieldRule(name="decimals", type=FieldType.INT, min_value=0, max_value=19),
            FieldRule(
                name="reserve_address",
                type=FieldType.STRING,
                pattern=ALGORAND_ADDRESS_PATTERN,
            ),
        ),
        cross_field_rules=(
            CrossFieldRule(
                name="symbol_length",
                check="symbol_length",
                params=(("max_length", 8),),
            ),
            NETWORK_RULE,
        ),
        allowed_networks=ALGORAND_NETWORKS,
        specification_url="https://github.com/algorandfoundation/ARCs/blob/main/ARCs/arc-0019.md",
    )


def _arc200_v1() -> StandardProfile:
    return StandardProfile(
        standard=TokenStandard.ARC200,
        version="1.0.0",
        description="ARC-200 smart contract fungible token",
        required_fields=(
            FieldRule(name="name", type=FieldType.STRING, max_length=32),
            FieldRule(name="symbol", type=FieldType.STRING, max_length=8),
            FieldRule(name="decimals", type=FieldType.INT, min_value=0, max_value=18),
            FieldRule(name="total_supply", type=FieldType.INT, min_value=1, aliases=("total",)),
            *JURISDICTION_FIELDS,
        ),
        optional_fields=(
            FieldRule(
                name="app_id",
                type=FieldType.INT,
                min_value=1,
                description="Assigned on deployment; absent for pre-issuance validation",
            ),
            FieldRule(name="description", type=FieldType.STRING, max_length=1000),
        ),
        cross_field_rules=(
            CrossFieldRule(
                name="symbol_length",
                check="symbol_length",
                params=(("max_length", 8),),
            ),
            NETWORK_RULE,
        ),
        allowed_networks=ALGORAND_NETWORKS,
        specification_url="https://github.com/algorandfoundation/ARCs/blob/main/ARCs/arc-0200.md",
    )


def _erc20_v1() -> StandardProfile:
    return StandardProfile(
        standard=TokenStandard.ERC20,
        version="1.0.0",
        description="ERC-20 fungible token standard",
        required_fields=(
            FieldRule(name="name", type=FieldType.STRING, max_length=256),
            FieldRule(name="symbol", type=FieldType.STRING, max_length=11),
            FieldRule(name="decimals", type=FieldType.INT, min_value=0, max_value=18),
            *JURISDICTION_FIELDS,
        ),
        optional_fields=(
            FieldRule(
                name="total_supply", type=FieldType.INT, min_value=0, aliases=("totalSupply",)
            ),
            FieldRule(name="max_supply", type=FieldType.INT, min_value=1, aliases=("cap",)),
            FieldRule(name="description", type=FieldType.STRING, max_length=1000),
        ),
        cross_field_rules=(
            CrossFieldRule(
                name="symbol_length",
                check="symbol_length",
                params=(("max_length", 11),),
            ),
            CrossFieldRule(
                name="supply_bounds",
                check="supply_bounds",
                params=(("supply", "total_supply"), ("cap", "max_supply")),
            ),
            NETWORK_RULE,
        ),
        allowed_networks=EVM_NETWORKS,
        specification_url="https://eips.ethereum.org/EIPS/eip-20",
    )


def builtin_profiles() -> list[StandardProfile]:
    """All shipped profiles, including superseded versions."""
    return [
        _asa_v1(),
        _arc3_v1(),
        _arc3_v1_1(),
        _arc19_v1(),
        _arc200_v1(),
        _erc20_v1(),
    ]
