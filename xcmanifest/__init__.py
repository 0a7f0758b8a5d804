"""
xcmanifest

Scripted edits to Xcode project manifests (project.pbxproj) and schemes.

Submodules:
- core: Manifest store, reference resolver, target synchronizer, configuration merger, scheme generator
- persistence: project.pbxproj and .xcscheme reading and writing
- editor: Path-based composite operations and JSON plans
- run_manifest: Command line entry point
"""

__version__ = "0.1.0"
