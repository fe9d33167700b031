"""Operations the tasks are built from: git, versions, file sets, metadata, install, archive."""
