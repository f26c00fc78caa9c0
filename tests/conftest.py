"""
Fixtures for android_build tests.

Build scripts mirror the app module of a Flutter project generated by
``flutter create``.
"""
import textwrap
from pathlib import Path

import pytest

from android_build import FlutterProvider

FLUTTER_APP_SCRIPT = textwrap.dedent("""\
    plugins {
        id("com.android.application")
        id("kotlin-android")
        id("dev.flutter.flutter-gradle-plugin")
    }

    android {
        namespace = "com.example.mechanic_discovery_app"
        compileSdk = flutter.compileSdkVersion.toInt()
        ndkVersion = "27.0.12077973"

        compileOptions {
            sourceCompatibility = JavaVersion.VERSION_11
            targetCompatibility = JavaVersion.VERSION_11
        }

        kotlinOptions {
            jvmTarget = JavaVersion.VERSION_11.toString()
        }

        defaultConfig {
            applicationId = "com.example.mechanic_discovery_app"
            minSdk = flutter.minSdkVersion?.toInt() ?: 21
            targetSdk = flutter.targetSdkVersion?.toInt() ?: 34
            versionCode = flutter.versionCode?.toInt() ?: 1
            versionName = flutter.versionName ?: "1.0"
            manifestPlaceholders["appAuthRedirectScheme"] = "com.example.mechanic_discovery_app"
        }

        buildTypes {
            getByName("release") {
                isMinifyEnabled = false
                isShrinkResources = false
            }
        }
    }

    flutter {
        source = "../.."
    }

    dependencies {
        implementation("org.jetbrains.kotlin:kotlin-stdlib-jdk8:1.9.0")
    }
""")

MINIMAL_SCRIPT = textwrap.dedent("""\
    android {
        namespace = "com.example.app"
        defaultConfig {
            applicationId = "com.example.app"
        }
    }
""")

FLUTTER_EXTENSION_KT = textwrap.dedent("""\
    package com.flutter.gradle

    open class FlutterExtension {
        /** Sets the compileSdkVersion used by default in Flutter app projects. */
        val compileSdkVersion: Int = 35

        /** Sets the minSdkVersion used by default in Flutter app projects. */
        val minSdkVersion: Int = 21

        /** Sets the targetSdkVersion used by default in Flutter app projects. */
        val targetSdkVersion: Int = 35

        /** Sets the ndkVersion used by default in Flutter app projects. */
        val ndkVersion: String = "27.0.12077973"

        var source: String? = null
    }
""")

FLUTTER_GROOVY = textwrap.dedent("""\
    class FlutterExtension {
        static int compileSdkVersion = 34
        static int minSdkVersion = 19
        static int targetSdkVersion = 33
        static String ndkVersion = "23.1.7779620"
    }
""")

MANIFEST_TEMPLATE = textwrap.dedent("""\
    <manifest xmlns:android="http://schemas.android.com/apk/res/android">
        <application android:label="mechanic_discovery_app" android:name="${applicationName}">
            <activity android:name="net.openid.appauth.RedirectUriReceiverActivity" android:exported="true">
                <intent-filter>
                    <action android:name="android.intent.action.VIEW"/>
                    <data android:scheme="${appAuthRedirectScheme}"/>
                </intent-filter>
            </activity>
            <provider android:name="androidx.core.content.FileProvider"
                android:authorities="${applicationId}.fileprovider"/>
        </application>
    </manifest>
""")


@pytest.fixture
def flutter_provider() -> FlutterProvider:
    return FlutterProvider({
        "compileSdkVersion": 35,
        "minSdkVersion": 21,
        "targetSdkVersion": 35,
        "ndkVersion": "27.0.12077973",
        "versionCode": "7",
        "versionName": "2.3.0",
    })


@pytest.fixture
def flutter_sdk(tmp_path: Path) -> Path:
    sdk_dir = tmp_path / "flutter"
    extension_dir = sdk_dir / "packages" / "flutter_tools" / "gradle" / "src" / "main" / "kotlin"
    extension_dir.mkdir(parents=True)
    (extension_dir / "FlutterExtension.kt").write_text(FLUTTER_EXTENSION_KT, encoding="utf-8")
    return sdk_dir


@pytest.fixture
def flutter_project(tmp_path: Path, flutter_sdk: Path) -> Path:
    """A Flutter project with ``android/app`` and a ``local.properties`` pointing at the fake SDK."""
    project_dir = tmp_path / "mechanic_discovery_app"
    app_dir = project_dir / "android" / "app"
    (app_dir / "src" / "main").mkdir(parents=True)
    (app_dir / "build.gradle.kts").write_text(FLUTTER_APP_SCRIPT, encoding="utf-8")
    (app_dir / "src" / "main" / "AndroidManifest.xml").write_text(MANIFEST_TEMPLATE, encoding="utf-8")
    sdk_path = str(flutter_sdk).replace("\\", "\\\\")
    (project_dir / "android" / "local.properties").write_text(
        f"sdk.dir=/opt/android-sdk\n"
        f"flutter.sdk={sdk_path}\n"
        f"flutter.buildMode=release\n"
        f"flutter.versionName=1.4.2\n"
        f"flutter.versionCode=12\n",
        encoding="utf-8"
    )
    return project_dir

SIGNING_SCRIPT = textwrap.dedent("""\
    import java.util.Properties
    import java.io.FileInputStream

    plugins {
        id("com.android.application")
        id("kotlin-android")
        id("dev.flutter.flutter-gradle-plugin")
    }

    val keystoreProperties = Properties()
    val keystorePropertiesFile = rootProject.file("key.properties")
    if (keystorePropertiesFile.exists()) {
        keystoreProperties.load(FileInputStream(keystorePropertiesFile))
    }

    android {
        namespace = "com.example.mechanic_discovery_app"
        compileSdk = flutter.compileSdkVersion

        defaultConfig {
            applicationId = "com.example.mechanic_discovery_app"
            minSdk = flutter.minSdkVersion
            targetSdk = flutter.targetSdkVersion
            versionCode = flutter.versionCode
            versionName = flutter.versionName
        }

        signingConfigs {
            create("release") {
                keyAlias = keystoreProperties["keyAlias"] as String
                keyPassword = keystoreProperties["keyPassword"] as String
                storeFile = keystoreProperties["storeFile"]?.let { file(it) }
                storePassword = keystoreProperties["storePassword"] as String
            }
        }

        buildTypes {
            release {
                signingConfig = signingConfigs.getByName("release")
            }
        }
    }

    flutter {
        source = "../.."
    }
""")
