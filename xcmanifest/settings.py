"""
xcmanifest configuration

Runtime settings read from the environment, plus the build-setting presets
shipped with the tool.
"""

import os


def default_scheme_user() -> str:
    """Owner of private schemes; never fails when no login name is available."""
    return os.getenv("XCMANIFEST_SCHEME_USER") or os.getenv("USER") or os.getenv("LOGNAME") or "xcmanifest"


class Settings:
    # Project bundle or project.pbxproj to edit
    PROJECT: str = os.getenv("XCMANIFEST_PROJECT", "")

    # Logging
    LOG_LEVEL: str = os.getenv("XCMANIFEST_LOG_LEVEL", "INFO")

    # Group that holds product references
    PRODUCTS_GROUP: str = os.getenv("XCMANIFEST_PRODUCTS_GROUP", "Products")

    # Owner of private schemes
    SCHEME_USER: str = default_scheme_user()


settings = Settings()

# Current Xcode recommended build settings
RECOMMENDED_SETTINGS = {
    "ENABLE_USER_SCRIPT_SANDBOXING": "YES",
    "LOCALIZATION_PREFERS_STRING_CATALOGS": "YES",
    "ASSETCATALOG_COMPILER_GENERATE_SWIFT_ASSET_SYMBOL_EXTENSIONS": "YES",
    "CLANG_WARN_QUOTED_INCLUDE_IN_FRAMEWORK_HEADER": "YES",
    "CLANG_WARN_STRICT_PROTOTYPES": "YES",
    "CLANG_WARN_OBJC_IMPLICIT_RETAIN_SELF": "YES",
    "CLANG_ANALYZER_NONNULL": "YES",
    "CLANG_ANALYZER_NUMBER_OBJECT_CONVERSION": "YES_AGGRESSIVE",
    "CLANG_WARN_DOCUMENTATION_COMMENTS": "YES",
    "CLANG_WARN_UNGUARDED_AVAILABILITY": "YES_AGGRESSIVE",
    "GCC_WARN_ABOUT_RETURN_TYPE": "YES_ERROR",
    "CLANG_WARN_OBJC_ROOT_CLASS": "YES_ERROR",
    "IPHONEOS_DEPLOYMENT_TARGET": "17.0",
}

# Settings Xcode flags for removal
DEPRECATED_SETTINGS = ("VALID_ARCHS",)

# Root object attributes written alongside the recommended settings
RECOMMENDED_ATTRIBUTES = {
    "LastSwiftUpdateCheck": "1610",
    "LastUpgradeCheck": "1610",
}

PRESETS = {
    "recommended": (RECOMMENDED_SETTINGS, DEPRECATED_SETTINGS, RECOMMENDED_ATTRIBUTES),
}
